from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from content_service import update_content_status
from database import get_db
from models import ContentStatus, User
from schemas import ContentStatusResponse, ContentStatusUpdate
from security import require_staff
from utils import log_admin_action

router = APIRouter()


@router.patch("/contents/{content_uuid}/status", response_model=ContentStatusResponse)
def update_content_status_route(
    content_uuid: str,
    body: ContentStatusUpdate,
    request: Request,
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    result = update_content_status(db, content_uuid, ContentStatus[body.status.name])
    log_admin_action(db, admin, "update_content_status", method="PATCH", path=request.url.path, meta=result)
    return ContentStatusResponse(**result)
