from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from judge_service import (
    evaluate_submission,
    get_judge_detail,
    judging_summary,
    list_evaluation_parameters,
    list_judges,
    list_scored_submissions,
    list_unscored_submissions,
    register_judge,
    remove_judge,
    update_judge,
)
from models import User
from schemas import EvaluateSubmissionRequest, JudgeRegister, JudgeUpdate
from security import require_judge, require_staff
from utils import log_admin_action

router = APIRouter()


@router.get("/judges")
def list_judges_route(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    search: Optional[str] = None,
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return list_judges(db, page, limit, search)


@router.post("/judges/add")
def register_judge_route(
    body: JudgeRegister,
    request: Request,
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    result = register_judge(db, body)
    log_admin_action(db, admin, "register_judge", method="POST", path=request.url.path, meta={"uuid": result["data"]["uuid"]})
    return result


@router.get("/judges/me")
def judge_detail_route(user: User = Depends(require_judge), db: Session = Depends(get_db)):
    return get_judge_detail(db, user)


@router.get("/judges/scored/{competition_uuid}")
def scored_submissions_route(
    competition_uuid: str,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    user: User = Depends(require_judge),
    db: Session = Depends(get_db),
):
    return list_scored_submissions(db, user, competition_uuid, page, limit)


@router.get("/judges/unscored/{competition_uuid}")
def unscored_submissions_route(
    competition_uuid: str,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    user: User = Depends(require_judge),
    db: Session = Depends(get_db),
):
    return list_unscored_submissions(db, user, competition_uuid, page, limit)


@router.get("/judges/summary/{competition_uuid}")
def judging_summary_route(
    competition_uuid: str,
    user: User = Depends(require_judge),
    db: Session = Depends(get_db),
):
    return {"status": "success", "data": judging_summary(db, user, competition_uuid)}


@router.get("/judges/{competition_uuid}/evaluation-parameters")
def evaluation_parameters_route(
    competition_uuid: str,
    user: User = Depends(require_judge),
    db: Session = Depends(get_db),
):
    return list_evaluation_parameters(db, competition_uuid)


@router.patch("/judges/{judge_uuid}/submission")
def evaluate_submission_route(
    judge_uuid: str,
    body: EvaluateSubmissionRequest,
    user: User = Depends(require_judge),
    db: Session = Depends(get_db),
):
    if judge_uuid != user.uuid:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Judges can only submit their own scores")
    return evaluate_submission(db, user, body)


@router.patch("/judges/{judge_uuid}")
def update_judge_route(
    judge_uuid: str,
    body: JudgeUpdate,
    request: Request,
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    result = update_judge(db, judge_uuid, body)
    log_admin_action(db, admin, "update_judge", method="PATCH", path=request.url.path, meta={"uuid": judge_uuid})
    return result


@router.delete("/judges/{judge_uuid}")
def remove_judge_route(
    judge_uuid: str,
    request: Request,
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    result = remove_judge(db, judge_uuid)
    log_admin_action(db, admin, "remove_judge", method="DELETE", path=request.url.path, meta={"uuid": judge_uuid})
    return result
