import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from competition_service import (
    build_standings_workbook,
    create_competition,
    get_competition_by_slug,
    get_competition_by_uuid,
    get_competition_detail,
    get_competition_or_404,
    get_standings,
    get_winners,
    list_active_competitions,
    list_all_competitions,
    list_competitions_by_type,
    list_finished_competitions,
    remove_competition,
    update_competition,
)
from database import SessionLocal, get_db
from models import ContentStatus, ContentType, User
from schemas import (
    CompetitionCreate,
    CompetitionUpdate,
    ContentStatusEnum,
    ContentTypeEnum,
    SubmissionCreate,
)
from security import require_staff, require_student
from submission_service import cleanup_uploads, store_submission_assets, submit_to_competition
from time_utils import Clock, get_clock
from utils import IMAGE_TYPES, THUMBNAIL_PREFIX, delete_s3_urls, log_admin_action, parse_form_model, upload_to_s3
from winner_scheduler import determine_winners_for_competition

router = APIRouter()


def get_session_factory():
    return SessionLocal


def _upload_thumbnail(thumbnail: Optional[UploadFile]) -> Optional[str]:
    if thumbnail is None or not thumbnail.filename:
        return None
    return upload_to_s3(thumbnail, THUMBNAIL_PREFIX, allowed_types=IMAGE_TYPES)


@router.post("/competitions")
def create_competition_route(
    request: Request,
    data: str = Form(...),
    thumbnail: Optional[UploadFile] = File(None),
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    payload = parse_form_model(CompetitionCreate, data)
    thumbnail_url = _upload_thumbnail(thumbnail)
    if thumbnail_url:
        payload.thumbnail = thumbnail_url
    try:
        result = create_competition(db, payload)
    except Exception:
        cleanup_uploads([thumbnail_url] if thumbnail_url else [], delete_s3_urls)
        raise
    log_admin_action(db, admin, "create_competition", method="POST", path=request.url.path, meta=result["data"])
    return result


@router.get("/competitions")
def list_competitions_route(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    search: Optional[str] = None,
    type: Optional[ContentTypeEnum] = None,
    db: Session = Depends(get_db),
):
    if type is not None:
        return list_competitions_by_type(db, ContentType[type.name], page, limit, search)
    return list_all_competitions(db, page, limit, search)


@router.get("/competitions/active")
def list_active_route(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    search: Optional[str] = None,
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db),
):
    return list_active_competitions(db, clock(), page, limit, search)


@router.get("/competitions/finished")
def list_finished_route(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    search: Optional[str] = None,
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db),
):
    return list_finished_competitions(db, clock(), page, limit, search)


@router.get("/competitions/detail/{slug}")
def competition_detail_route(
    slug: str,
    type: Optional[ContentTypeEnum] = None,
    status: ContentStatusEnum = ContentStatusEnum.APPROVED,
    db: Session = Depends(get_db),
):
    content_type = ContentType[type.name] if type is not None else None
    return get_competition_detail(db, slug, content_type, ContentStatus[status.name])


@router.get("/competitions/slug/{slug}")
def competition_by_slug_route(slug: str, db: Session = Depends(get_db)):
    return get_competition_by_slug(db, slug)


@router.post("/competitions/submit")
def submit_route(
    data: str = Form(...),
    thumbnail: Optional[UploadFile] = File(None),
    file: Optional[UploadFile] = File(None),
    user: User = Depends(require_student),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db),
):
    payload = parse_form_model(SubmissionCreate, data)
    uploaded = store_submission_assets(
        payload,
        thumbnail if thumbnail is not None and thumbnail.filename else None,
        file if file is not None and file.filename else None,
    )
    return submit_to_competition(db, user, payload, clock(), uploaded_urls=uploaded)


@router.get("/competitions/{competition_uuid}")
def competition_by_uuid_route(competition_uuid: str, db: Session = Depends(get_db)):
    return get_competition_by_uuid(db, competition_uuid)


@router.patch("/competitions/{competition_uuid}")
def update_competition_route(
    competition_uuid: str,
    request: Request,
    data: str = Form(...),
    thumbnail: Optional[UploadFile] = File(None),
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    patch = parse_form_model(CompetitionUpdate, data)
    previous_thumbnail = get_competition_or_404(db, competition_uuid).thumbnail
    thumbnail_url = _upload_thumbnail(thumbnail)
    if thumbnail_url:
        patch.thumbnail = thumbnail_url
    try:
        result = update_competition(db, competition_uuid, patch)
    except Exception:
        cleanup_uploads([thumbnail_url] if thumbnail_url else [], delete_s3_urls)
        raise
    if thumbnail_url and previous_thumbnail:
        cleanup_uploads([previous_thumbnail], delete_s3_urls)
    log_admin_action(db, admin, "update_competition", method="PATCH", path=request.url.path, meta=result["data"])
    return result


@router.delete("/competitions/{competition_uuid}")
def delete_competition_route(
    competition_uuid: str,
    request: Request,
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    thumbnail = remove_competition(db, competition_uuid)
    if thumbnail:
        cleanup_uploads([thumbnail], delete_s3_urls)
    log_admin_action(db, admin, "delete_competition", method="DELETE", path=request.url.path, meta={"uuid": competition_uuid})
    return {"status": "success", "message": "Competition deleted successfully!"}


@router.get("/competitions/{competition_uuid}/winners")
def winners_route(competition_uuid: str, db: Session = Depends(get_db)):
    return get_winners(db, competition_uuid)


@router.get("/competitions/{competition_uuid}/standings")
def standings_route(
    competition_uuid: str,
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return {"status": "success", "data": get_standings(db, competition_uuid)}


@router.get("/competitions/{competition_uuid}/standings/export")
def export_standings_route(
    competition_uuid: str,
    admin: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    competition = get_competition_or_404(db, competition_uuid)
    output = build_standings_workbook(competition.title, get_standings(db, competition_uuid))
    filename = f"{competition.slug}-standings.xlsx"
    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/competitions/{competition_uuid}/winners/determine")
async def determine_winners_route(
    competition_uuid: str,
    request: Request,
    admin: User = Depends(require_staff),
    clock: Clock = Depends(get_clock),
    session_factory=Depends(get_session_factory),
    db: Session = Depends(get_db),
):
    winners = await determine_winners_for_competition(competition_uuid, clock(), session_factory=session_factory)
    await asyncio.to_thread(
        log_admin_action,
        db,
        admin,
        "determine_winners",
        method="POST",
        path=request.url.path,
        meta={"uuid": competition_uuid, "winners": len(winners)},
    )
    return {"status": "success", "message": "Winners determined successfully!", "data": winners}
