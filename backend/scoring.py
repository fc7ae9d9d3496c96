"""Final-score computation for competition submissions.

A submission's judged score is the weighted mean of its per-parameter
averages, normalised by the total weight actually configured on the
competition (weights are not required to add up to 100). The judged
score is then blended with the average public rating of the content.
"""
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from content_service import average_rating
from errors import NotFoundError
from models import EvaluationParameter, Score, Submission

JUDGE_SHARE = 0.8
PUBLIC_SHARE = 0.2


def normalized_judge_score(parameters: Iterable[Tuple[float, Optional[float]]]) -> float:
    """`parameters` is (weight, average) per evaluation parameter; a missing average counts as 0."""
    weighted_score = 0.0
    total_weight = 0.0
    for weight, average in parameters:
        weighted_score += (average or 0.0) * (weight / 100)
        total_weight += weight
    if total_weight <= 0:
        return 0.0
    return weighted_score / (total_weight / 100)


def blend_final_score(normalized_score: float, public_rating: Optional[float]) -> float:
    return PUBLIC_SHARE * (public_rating or 0.0) + JUDGE_SHARE * normalized_score


def parameter_averages(db: Session, submission: Submission) -> List[Tuple[float, Optional[float]]]:
    rows = (
        db.query(EvaluationParameter.weight, func.avg(Score.score))
        .outerjoin(
            Score,
            and_(Score.parameter_id == EvaluationParameter.id, Score.submission_id == submission.id),
        )
        .filter(EvaluationParameter.competition_id == submission.competition_id)
        .group_by(EvaluationParameter.id, EvaluationParameter.weight)
        .order_by(EvaluationParameter.id.asc())
        .all()
    )
    return [(float(weight), float(avg) if avg is not None else None) for weight, avg in rows]


def score_submission(db: Session, submission: Submission) -> float:
    normalized = normalized_judge_score(parameter_averages(db, submission))
    return blend_final_score(normalized, average_rating(db, submission.content_id))


def calculate_final_score(db: Session, submission_uuid: str) -> float:
    submission = db.query(Submission).filter(Submission.uuid == submission_uuid).first()
    if not submission:
        raise NotFoundError("Submission not found")
    return score_submission(db, submission)


def rank_scored(scored: Iterable[Tuple[Submission, float]]) -> List[Tuple[Submission, float]]:
    # sorted() is stable, so equal scores keep submission order
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


def competition_standings(db: Session, submissions: Iterable[Submission]) -> List[Tuple[Submission, float]]:
    return rank_scored((submission, score_submission(db, submission)) for submission in submissions)
