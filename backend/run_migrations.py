from __future__ import annotations

import argparse
import logging
import os
import sys

from bootstrap import (
    MIGRATION_MARKER_KEY,
    clear_bootstrap_marker,
    has_bootstrap_marker,
    run_bootstrap_migrations,
    set_bootstrap_marker,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the Skilins schema and seed the default staff account.")
    parser.add_argument("--force", action="store_true", help="Run even if the bootstrap marker exists.")
    parser.add_argument(
        "--reset-marker",
        action="store_true",
        help=f"Delete marker `{MIGRATION_MARKER_KEY}` and exit.",
    )
    parser.add_argument("--staff-email", help="Email for the seeded staff account (overrides DEFAULT_STAFF_EMAIL).")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    if args.reset_marker:
        removed = clear_bootstrap_marker()
        logger.info("Marker `%s` %s.", MIGRATION_MARKER_KEY, "removed" if removed else "was not set")
        return 0

    if args.staff_email:
        os.environ["DEFAULT_STAFF_EMAIL"] = args.staff_email

    if has_bootstrap_marker() and not args.force:
        logger.info("Bootstrap already ran (marker `%s`). Use --force to run again.", MIGRATION_MARKER_KEY)
        return 0

    run_bootstrap_migrations()
    set_bootstrap_marker()
    logger.info("Bootstrap finished; marker `%s` set.", MIGRATION_MARKER_KEY)
    return 0


if __name__ == "__main__":
    sys.exit(main())
