#!/usr/bin/env python3
"""Run one winner-determination pass now, outside the daily schedule.

Run from the backend directory: ``python scripts/determine_winners.py``.
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from database import SessionLocal
from time_utils import now_tz
from winner_scheduler import determine_winners_for_competition, run_winner_determination

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Record winners for competitions that have ended.")
    parser.add_argument("--competition", help="Only process this competition uuid.")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> dict:
    if args.competition:
        winners = await determine_winners_for_competition(args.competition, now_tz(), session_factory=SessionLocal)
        return {"processed": [args.competition], "failed": [], "winners": winners}
    return await run_winner_determination(SessionLocal, now_tz)


def main() -> int:
    report = asyncio.run(_run(parse_args()))
    print(json.dumps(report, indent=2, default=str))
    return 1 if report["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
