import io
import logging
from datetime import datetime
from typing import List, Optional

from openpyxl import Workbook
from sqlalchemy.orm import Session

from errors import NotFoundError, ValidationError
from models import (
    Competition,
    Content,
    ContentStatus,
    ContentType,
    EvaluationParameter,
    Judge,
    Score,
    Submission,
    User,
    Winner,
)
from schemas import (
    CompetitionCreate,
    CompetitionResponse,
    CompetitionUpdate,
    EvaluationParameterIn,
    StandingEntry,
    WinnerResponse,
)
from scoring import competition_standings
from time_utils import ensure_timezone
from utils import next_slug, page_envelope, paginate

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ("start_date", "end_date", "submission_deadline")


def get_competition_or_404(db: Session, competition_uuid: str) -> Competition:
    competition = db.query(Competition).filter(Competition.uuid == competition_uuid).first()
    if not competition:
        raise NotFoundError("Competition not found")
    return competition


def get_competition_by_slug_or_404(db: Session, slug: str) -> Competition:
    competition = db.query(Competition).filter(Competition.slug == slug).first()
    if not competition:
        raise NotFoundError("Competition not found")
    return competition


def serialize_competition(competition: Competition) -> dict:
    data = CompetitionResponse.model_validate(competition).model_dump(mode="json")
    data["submission_count"] = len(competition.submissions)
    return data


def _build_parameters(parameters: List[EvaluationParameterIn]) -> List[EvaluationParameter]:
    return [EvaluationParameter(name=item.parameter_name.strip(), weight=item.weight) for item in parameters]


def _relink_judges(db: Session, competition: Competition, judge_user_uuids: List[str]) -> None:
    for user_uuid in judge_user_uuids:
        judge = (
            db.query(Judge)
            .join(User, User.id == Judge.user_id)
            .filter(User.uuid == user_uuid)
            .first()
        )
        if not judge:
            raise NotFoundError(f"Judge {user_uuid} not found")
        if judge.competition_id and judge.competition_id != competition.id:
            logger.info("Judge %s moved from competition %s to %s", user_uuid, judge.competition_id, competition.uuid)
        judge.competition = competition


def create_competition(db: Session, payload: CompetitionCreate) -> dict:
    competition = Competition(
        title=payload.title,
        slug=next_slug(db, Competition, payload.title),
        type=ContentType[payload.type.name],
        thumbnail=payload.thumbnail,
        description=payload.description,
        guide=payload.guide,
        start_date=ensure_timezone(payload.start_date),
        end_date=ensure_timezone(payload.end_date),
        submission_deadline=ensure_timezone(payload.submission_deadline),
        winner_count=payload.winner_count,
    )
    competition.parameters = _build_parameters(payload.parameters)
    db.add(competition)
    try:
        db.flush()
        _relink_judges(db, competition, payload.judges)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(competition)

    return {
        "status": "success",
        "message": "Competition Added Successfully!",
        "data": {"uuid": competition.uuid, "slug": competition.slug},
    }


def update_competition(db: Session, competition_uuid: str, patch: CompetitionUpdate) -> dict:
    competition = get_competition_or_404(db, competition_uuid)
    changes = patch.model_dump(exclude_unset=True, exclude={"parameters", "judges"})

    schedule = {field: ensure_timezone(getattr(competition, field)) for field in SCHEDULE_FIELDS}
    for field in SCHEDULE_FIELDS:
        if changes.get(field) is not None:
            schedule[field] = ensure_timezone(changes[field])
    if schedule["start_date"] > schedule["end_date"]:
        raise ValidationError("start_date must not be after end_date")
    if schedule["submission_deadline"] > schedule["end_date"]:
        raise ValidationError("submission_deadline must not be after end_date")

    try:
        for field, value in changes.items():
            if value is None and field not in ("guide", "thumbnail"):
                continue
            if field in SCHEDULE_FIELDS:
                value = schedule[field]
            elif field == "type":
                value = ContentType[value.name]
            setattr(competition, field, value)

        if changes.get("title"):
            competition.slug = next_slug(db, Competition, changes["title"], exclude_id=competition.id)

        if patch.parameters is not None:
            scored = (
                db.query(Score.id)
                .join(EvaluationParameter, EvaluationParameter.id == Score.parameter_id)
                .filter(EvaluationParameter.competition_id == competition.id)
                .first()
            )
            if scored:
                raise ValidationError("Evaluation parameters cannot change after judging has started")
            competition.parameters = _build_parameters(patch.parameters)

        if patch.judges is not None:
            _relink_judges(db, competition, patch.judges)

        db.commit()
    except Exception:
        db.rollback()
        raise

    return {
        "status": "success",
        "message": "Competition updated successfully!",
        "data": {"uuid": competition.uuid, "slug": competition.slug},
    }


def _list_competitions(
    db: Session,
    page: Optional[int],
    limit: Optional[int],
    search: Optional[str] = None,
    *,
    ended_before: Optional[datetime] = None,
    running_after: Optional[datetime] = None,
    content_type: Optional[ContentType] = None,
) -> dict:
    query = db.query(Competition)
    if search:
        query = query.filter(Competition.title.ilike(f"%{search}%"))
    if ended_before is not None:
        query = query.filter(Competition.end_date <= ended_before)
    if running_after is not None:
        query = query.filter(Competition.end_date > running_after)
    if content_type is not None:
        query = query.filter(Competition.type == content_type)
    query = query.order_by(Competition.start_date.desc(), Competition.id.desc())

    rows, total = paginate(query, page, limit)
    return page_envelope([serialize_competition(row) for row in rows], total, page, limit)


def list_all_competitions(db: Session, page: Optional[int] = None, limit: Optional[int] = None, search: Optional[str] = None) -> dict:
    return _list_competitions(db, page, limit, search)


def list_active_competitions(db: Session, now: datetime, page: Optional[int] = None, limit: Optional[int] = None, search: Optional[str] = None) -> dict:
    return _list_competitions(db, page, limit, search, running_after=ensure_timezone(now))


def list_finished_competitions(db: Session, now: datetime, page: Optional[int] = None, limit: Optional[int] = None, search: Optional[str] = None) -> dict:
    return _list_competitions(db, page, limit, search, ended_before=ensure_timezone(now))


def list_competitions_by_type(db: Session, content_type: ContentType, page: Optional[int] = None, limit: Optional[int] = None, search: Optional[str] = None) -> dict:
    return _list_competitions(db, page, limit, search, content_type=content_type)


def _serialize_submission_brief(submission: Submission) -> dict:
    content = submission.content
    return {
        "uuid": submission.uuid,
        "created_at": submission.created_at.isoformat() if submission.created_at else None,
        "student": {"uuid": submission.student.uuid, "name": submission.student.name},
        "content": {
            "uuid": content.uuid,
            "title": content.title,
            "slug": content.slug,
            "thumbnail": content.thumbnail,
            "type": content.type.value,
            "status": content.status.value,
        },
    }


def _serialize_judge_brief(judge: Judge) -> dict:
    return {
        "uuid": judge.user.uuid,
        "full_name": judge.user.full_name,
        "profile": judge.user.profile_url,
        "role": judge.role,
        "linkedin": judge.linkedin,
        "instagram": judge.instagram,
    }


def serialize_winner(winner: Winner, with_scores: bool = False) -> dict:
    submission = winner.submission
    data = WinnerResponse(
        rank=winner.rank,
        final_score=winner.final_score,
        submission_uuid=submission.uuid,
        content_uuid=submission.content.uuid,
        content_title=submission.content.title,
        student_uuid=submission.student.uuid,
        student_name=submission.student.name,
    ).model_dump()
    if with_scores:
        data["scores"] = [
            {
                "parameter": score.parameter.name,
                "judge": score.judge.user.full_name,
                "score": score.score,
                "notes": score.notes,
            }
            for score in submission.scores
        ]
    return data


def get_competition_by_slug(db: Session, slug: str) -> dict:
    competition = get_competition_by_slug_or_404(db, slug)
    return {"status": "success", "data": serialize_competition(competition)}


def get_competition_by_uuid(db: Session, competition_uuid: str) -> dict:
    competition = get_competition_or_404(db, competition_uuid)
    return {"status": "success", "data": serialize_competition(competition)}


def get_competition_detail(
    db: Session,
    slug: str,
    content_type: Optional[ContentType] = None,
    status_filter: ContentStatus = ContentStatus.APPROVED,
) -> dict:
    query = db.query(Competition).filter(Competition.slug == slug)
    if content_type is not None:
        query = query.filter(Competition.type == content_type)
    competition = query.first()
    if not competition:
        raise NotFoundError("Competition not found")

    submissions = (
        db.query(Submission)
        .join(Content, Content.id == Submission.content_id)
        .filter(Submission.competition_id == competition.id, Content.status == status_filter)
        .order_by(Submission.id.asc())
        .all()
    )

    data = serialize_competition(competition)
    data["submissions"] = [_serialize_submission_brief(row) for row in submissions]
    data["judges"] = [_serialize_judge_brief(judge) for judge in competition.judges]
    data["winners"] = [serialize_winner(winner, with_scores=True) for winner in competition.winners]
    return {"status": "success", "data": data}


def remove_competition(db: Session, competition_uuid: str) -> Optional[str]:
    """Hard-delete; returns the thumbnail URL so the caller can clean up storage."""
    competition = get_competition_or_404(db, competition_uuid)
    thumbnail = competition.thumbnail
    db.delete(competition)
    db.commit()
    return thumbnail


def get_winners(db: Session, competition_uuid: str) -> dict:
    competition = get_competition_or_404(db, competition_uuid)
    winners = (
        db.query(Winner)
        .filter(Winner.competition_id == competition.id)
        .order_by(Winner.rank.asc())
        .all()
    )
    return {"status": "success", "data": [serialize_winner(row) for row in winners]}


def get_standings(db: Session, competition_uuid: str) -> List[dict]:
    competition = get_competition_or_404(db, competition_uuid)
    approved = [row for row in competition.submissions if row.content.status == ContentStatus.APPROVED]
    ranked = competition_standings(db, approved)
    return [
        StandingEntry(
            rank=index + 1,
            submission_uuid=submission.uuid,
            student_name=submission.student.name,
            content_title=submission.content.title,
            content_status=submission.content.status.value,
            final_score=round(score, 4),
        ).model_dump(mode="json")
        for index, (submission, score) in enumerate(ranked)
    ]


def build_standings_workbook(competition_title: str, standings: List[dict]) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Standings"
    ws.append(["Competition", competition_title])
    ws.append([])
    ws.append(["Rank", "Student", "Submission", "Status", "Final Score"])
    for row in standings:
        ws.append([row["rank"], row["student_name"], row["content_title"], row["content_status"], row["final_score"]])

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
