"""Daily winner determination for ended competitions.

Every pass picks up competitions whose end date has passed and that have no
winners yet, scores their submissions concurrently and records the top
``winner_count`` as Winner rows. A competition is only ever processed once;
the unique constraints on Winner make a racing second pass fail its insert.
"""
import asyncio
import logging
import os
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import SessionLocal
from errors import NotFoundError, ValidationError, WinnersAlreadyDeterminedError
from models import Competition, Submission, Winner
from scoring import rank_scored, score_submission
from time_utils import Clock, ensure_timezone, now_tz, seconds_until_next_run

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def scheduler_enabled() -> bool:
    return os.environ.get("WINNER_SCHEDULER_ENABLED", "true").strip().lower() in {"1", "true", "yes", "on"}


def scheduler_hour() -> int:
    raw = os.environ.get("WINNER_SCHEDULER_HOUR", "0")
    try:
        hour = int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid WINNER_SCHEDULER_HOUR: {raw}")
    if not 0 <= hour <= 23:
        raise RuntimeError(f"Invalid WINNER_SCHEDULER_HOUR: {raw}")
    return hour


def eligible_competitions(db: Session, now: datetime) -> List[Competition]:
    return (
        db.query(Competition)
        .filter(Competition.end_date <= ensure_timezone(now), ~Competition.winners.any())
        .order_by(Competition.id.asc())
        .all()
    )


def _score_in_own_session(session_factory: SessionFactory, submission_id: int) -> Tuple[int, float]:
    db = session_factory()
    try:
        submission = db.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")
        return submission_id, score_submission(db, submission)
    finally:
        db.close()


async def score_submissions(session_factory: SessionFactory, submission_ids: List[int]) -> List[Tuple[int, float]]:
    # gather keeps input order, which the stable ranking relies on for ties
    return list(
        await asyncio.gather(
            *(asyncio.to_thread(_score_in_own_session, session_factory, submission_id) for submission_id in submission_ids)
        )
    )


def _eligible_competition_ids(session_factory: SessionFactory, now: datetime) -> List[int]:
    db = session_factory()
    try:
        return [row.id for row in eligible_competitions(db, now)]
    finally:
        db.close()


def _submission_ids(competition: Competition) -> List[int]:
    return [row.id for row in competition.submissions]


def _record_winners(db: Session, competition: Competition, selected: List[Tuple[int, float]]) -> List[Winner]:
    winners = [
        Winner(competition_id=competition.id, submission_id=submission_id, rank=index + 1, final_score=score)
        for index, (submission_id, score) in enumerate(selected)
    ]
    db.add_all(winners)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise WinnersAlreadyDeterminedError()
    return winners


async def _determine(session_factory: SessionFactory, db: Session, competition: Competition) -> List[Winner]:
    competition_uuid = competition.uuid
    submission_ids = await asyncio.to_thread(_submission_ids, competition)
    scored = await score_submissions(session_factory, submission_ids)
    selected = rank_scored(scored)[: competition.winner_count]
    winners = await asyncio.to_thread(_record_winners, db, competition, selected)

    logger.info(
        "Recorded %s winner(s) for competition %s out of %s submission(s)",
        len(winners),
        competition_uuid,
        len(submission_ids),
    )
    return winners


async def run_winner_determination(session_factory: SessionFactory = SessionLocal, clock: Clock = now_tz) -> Dict[str, list]:
    """One scheduled pass. A failing competition is logged and reported, the rest still run."""
    now = clock()
    report: Dict[str, list] = {"processed": [], "failed": []}

    competition_ids = await asyncio.to_thread(_eligible_competition_ids, session_factory, now)
    if not competition_ids:
        logger.info("Winner determination: no ended competitions awaiting winners")
        return report

    for competition_id in competition_ids:
        db = session_factory()
        competition_uuid = None
        try:
            competition = await asyncio.to_thread(db.get, Competition, competition_id)
            competition_uuid = competition.uuid
            await _determine(session_factory, db, competition)
            report["processed"].append(competition_uuid)
        except Exception as exc:
            db.rollback()
            logger.exception("Winner determination failed for competition %s", competition_uuid or competition_id)
            report["failed"].append({"competition": competition_uuid or competition_id, "error": str(exc)})
        finally:
            db.close()

    logger.info(
        "Winner determination finished: %s processed, %s failed",
        len(report["processed"]),
        len(report["failed"]),
    )
    return report


def _load_for_override(db: Session, competition_uuid: str, now: datetime) -> Competition:
    competition = db.query(Competition).filter(Competition.uuid == competition_uuid).first()
    if not competition:
        raise NotFoundError("Competition not found")
    if ensure_timezone(competition.end_date) > ensure_timezone(now):
        raise ValidationError("Competition has not ended yet")
    if competition.winners:
        raise WinnersAlreadyDeterminedError()
    return competition


def _serialize_winners(winners: List[Winner]) -> List[dict]:
    return [
        {
            "rank": winner.rank,
            "final_score": winner.final_score,
            "submission_uuid": winner.submission.uuid,
        }
        for winner in winners
    ]


async def determine_winners_for_competition(
    competition_uuid: str,
    now: datetime,
    session_factory: SessionFactory = SessionLocal,
) -> List[dict]:
    """Manual override for a single ended competition; same once-only rule as the daily pass."""
    db = session_factory()
    try:
        competition = await asyncio.to_thread(_load_for_override, db, competition_uuid, now)
        winners = await _determine(session_factory, db, competition)
        return await asyncio.to_thread(_serialize_winners, winners)
    finally:
        db.close()


async def winner_scheduler_loop(
    session_factory: SessionFactory = SessionLocal,
    clock: Clock = now_tz,
    hour: Optional[int] = None,
) -> None:
    run_hour = scheduler_hour() if hour is None else hour
    while True:
        delay = seconds_until_next_run(clock(), run_hour)
        logger.info("Next winner determination in %.0f seconds", delay)
        await asyncio.sleep(delay)
        try:
            await run_winner_determination(session_factory, clock)
        except Exception:
            logger.exception("Winner determination pass crashed")


def start_winner_scheduler() -> Optional[asyncio.Task]:
    if not scheduler_enabled():
        logger.info("Winner scheduler disabled")
        return None
    return asyncio.create_task(winner_scheduler_loop())


async def stop_winner_scheduler(task: Optional[asyncio.Task]) -> None:
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Winner scheduler stopped")
