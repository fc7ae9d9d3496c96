import asyncio
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from emailer import send_mail
from models import User
from schemas import RejectSubmissionRequest
from security import require_staff
from submission_service import approve_submission, reject_submission
from utils import log_admin_action

router = APIRouter()


def get_notifier():
    return send_mail


@router.patch("/submissions/{submission_uuid}/approve")
async def approve_submission_route(
    submission_uuid: str,
    request: Request,
    admin: User = Depends(require_staff),
    notifier=Depends(get_notifier),
    db: Session = Depends(get_db),
):
    result = await approve_submission(db, submission_uuid, notifier=notifier)
    await asyncio.to_thread(
        log_admin_action, db, admin, "approve_submission", method="PATCH", path=request.url.path, meta=result["data"]
    )
    return result


@router.patch("/submissions/{submission_uuid}/reject")
async def reject_submission_route(
    submission_uuid: str,
    request: Request,
    body: Optional[RejectSubmissionRequest] = Body(None),
    admin: User = Depends(require_staff),
    notifier=Depends(get_notifier),
    db: Session = Depends(get_db),
):
    reason = body.reason if body else None
    result = await reject_submission(db, submission_uuid, reason=reason, notifier=notifier)
    await asyncio.to_thread(
        log_admin_action, db, admin, "reject_submission", method="PATCH", path=request.url.path, meta=result["data"]
    )
    return result
