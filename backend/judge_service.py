import logging
from typing import Optional

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth import get_password_hash
from competition_service import get_competition_or_404
from errors import DuplicateEvaluationError, NotFoundError, ValidationError
from models import (
    Competition,
    Content,
    ContentStatus,
    EvaluationParameter,
    Judge,
    Score,
    Submission,
    User,
    UserRole,
)
from schemas import (
    EvaluateSubmissionRequest,
    EvaluationParameterResponse,
    JudgeRegister,
    JudgeResponse,
    JudgeUpdate,
    ScoreResponse,
)
from utils import page_envelope, paginate

logger = logging.getLogger(__name__)


def serialize_judge(judge: Judge) -> dict:
    return JudgeResponse(
        uuid=judge.user.uuid,
        profile=judge.user.profile_url,
        full_name=judge.user.full_name,
        email=judge.user.email,
        role=judge.role,
        linkedin=judge.linkedin,
        instagram=judge.instagram,
        competition=judge.competition.uuid if judge.competition else None,
    ).model_dump()


def get_judge_for_user(db: Session, user: User) -> Judge:
    judge = db.query(Judge).filter(Judge.user_id == user.id).first()
    if not judge:
        raise NotFoundError("Judge profile not found")
    return judge


def _get_judge_by_user_uuid(db: Session, user_uuid: str) -> Judge:
    judge = (
        db.query(Judge)
        .join(User, User.id == Judge.user_id)
        .filter(User.uuid == user_uuid)
        .first()
    )
    if not judge:
        raise NotFoundError("Judge not found")
    return judge


def evaluate_submission(db: Session, user: User, payload: EvaluateSubmissionRequest) -> dict:
    submission = db.query(Submission).filter(Submission.uuid == payload.submission_uuid).first()
    if not submission:
        raise NotFoundError("Submission not found")

    judge = (
        db.query(Judge)
        .filter(Judge.user_id == user.id, Judge.competition_id == submission.competition_id)
        .first()
    )
    if not judge:
        raise NotFoundError("Judge is not assigned to this competition")

    already_scored = (
        db.query(Score.id)
        .filter(Score.judge_id == judge.id, Score.submission_id == submission.id)
        .first()
    )
    if already_scored:
        raise DuplicateEvaluationError()

    parameter_uuids = [entry.parameter_uuid for entry in payload.parameter_scores]
    parameters = {
        row.uuid: row
        for row in db.query(EvaluationParameter)
        .filter(
            EvaluationParameter.competition_id == submission.competition_id,
            EvaluationParameter.uuid.in_(parameter_uuids),
        )
        .all()
    }
    missing = [uuid for uuid in parameter_uuids if uuid not in parameters]
    if missing:
        raise ValidationError(f"Unknown evaluation parameter(s) for this competition: {', '.join(missing)}")

    scores = [
        Score(
            judge_id=judge.id,
            submission_id=submission.id,
            parameter_id=parameters[entry.parameter_uuid].id,
            score=entry.score,
            notes=entry.notes,
        )
        for entry in payload.parameter_scores
    ]
    db.add_all(scores)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateEvaluationError()

    logger.info("Judge %s scored submission %s on %s parameter(s)", user.uuid, submission.uuid, len(scores))
    return {
        "status": "success",
        "message": "Submission evaluated successfully!",
        "data": [ScoreResponse.model_validate(score).model_dump() for score in scores],
    }


def register_judge(db: Session, payload: JudgeRegister) -> dict:
    if db.query(User.id).filter(User.email == payload.email).first():
        raise ValidationError("Email already registered")

    user = User(
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        full_name=payload.full_name.strip(),
        role=UserRole.JUDGE,
    )
    user.judge = Judge(role=payload.role, linkedin=payload.linkedin, instagram=payload.instagram)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Email already registered")
    db.refresh(user)
    return {"status": "success", "message": "Judge registered successfully!", "data": serialize_judge(user.judge)}


def update_judge(db: Session, user_uuid: str, patch: JudgeUpdate) -> dict:
    judge = _get_judge_by_user_uuid(db, user_uuid)
    changes = patch.model_dump(exclude_unset=True)
    full_name = changes.pop("full_name", None)
    if full_name:
        judge.user.full_name = full_name.strip()
    for field, value in changes.items():
        setattr(judge, field, value)
    db.commit()
    return {"status": "success", "message": "Judge updated successfully!", "data": serialize_judge(judge)}


def remove_judge(db: Session, user_uuid: str) -> dict:
    judge = _get_judge_by_user_uuid(db, user_uuid)
    if db.query(Score.id).filter(Score.judge_id == judge.id).first():
        raise ValidationError("Judge has recorded scores and cannot be removed")
    user = judge.user
    user.role = UserRole.USER
    db.delete(judge)
    db.commit()
    return {"status": "success", "message": "Judge removed successfully!"}


def list_judges(db: Session, page: Optional[int] = None, limit: Optional[int] = None, search: Optional[str] = None) -> dict:
    query = db.query(Judge).join(User, User.id == Judge.user_id)
    if search:
        query = query.filter(User.full_name.ilike(f"%{search}%"))
    query = query.order_by(User.full_name.asc(), Judge.id.asc())
    rows, total = paginate(query, page, limit)
    return page_envelope([serialize_judge(row) for row in rows], total, page, limit)


def get_judge_detail(db: Session, user: User) -> dict:
    return {"status": "success", "data": serialize_judge(get_judge_for_user(db, user))}


def list_evaluation_parameters(db: Session, competition_uuid: str) -> dict:
    competition = get_competition_or_404(db, competition_uuid)
    if not competition.parameters:
        raise NotFoundError("Evaluation parameters not found")
    return {
        "status": "success",
        "data": [EvaluationParameterResponse.model_validate(row).model_dump() for row in competition.parameters],
    }


def _approved_submissions(db: Session, competition: Competition):
    return (
        db.query(Submission)
        .join(Content, Content.id == Submission.content_id)
        .filter(Submission.competition_id == competition.id, Content.status == ContentStatus.APPROVED)
    )


def _scored_clause(judge: Judge):
    return exists().where(Score.submission_id == Submission.id, Score.judge_id == judge.id)


def _serialize_for_judge(submission: Submission) -> dict:
    content = submission.content
    return {
        "uuid": submission.uuid,
        "created_at": submission.created_at.isoformat() if submission.created_at else None,
        "student_name": submission.student.name,
        "content": {
            "uuid": content.uuid,
            "title": content.title,
            "slug": content.slug,
            "thumbnail": content.thumbnail,
            "type": content.type.value,
        },
    }


def _list_for_judge(
    db: Session,
    user: User,
    competition_uuid: str,
    scored: bool,
    page: Optional[int],
    limit: Optional[int],
) -> dict:
    competition = get_competition_or_404(db, competition_uuid)
    judge = get_judge_for_user(db, user)
    clause = _scored_clause(judge)
    query = _approved_submissions(db, competition).filter(clause if scored else ~clause)
    rows, total = paginate(query.order_by(Submission.id.asc()), page, limit)
    return page_envelope([_serialize_for_judge(row) for row in rows], total, page, limit)


def list_scored_submissions(db: Session, user: User, competition_uuid: str, page: Optional[int] = None, limit: Optional[int] = None) -> dict:
    return _list_for_judge(db, user, competition_uuid, True, page, limit)


def list_unscored_submissions(db: Session, user: User, competition_uuid: str, page: Optional[int] = None, limit: Optional[int] = None) -> dict:
    return _list_for_judge(db, user, competition_uuid, False, page, limit)


def judging_summary(db: Session, user: User, competition_uuid: str) -> dict:
    competition = get_competition_or_404(db, competition_uuid)
    judge = get_judge_for_user(db, user)
    base = _approved_submissions(db, competition)
    total = base.count()
    scored = base.filter(_scored_clause(judge)).count()
    return {
        "scoredSubmissions": scored,
        "unscoredSubmissions": total - scored,
        "totalSubmissions": total,
        "deadlineJudge": competition.end_date.isoformat() if competition.end_date else None,
    }

