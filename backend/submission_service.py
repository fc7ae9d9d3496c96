import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from competition_service import get_competition_by_slug_or_404
from content_service import CONTENT_ADAPTERS, update_content_status
from emailer import send_mail
from errors import (
    DeadlinePassedError,
    DuplicateSubmissionError,
    NotFoundError,
    SubmissionConflictError,
    TypeMismatchError,
)
from models import Competition, Content, ContentStatus, ContentType, Student, Submission, User
from schemas import SubmissionCreate, SubmissionResponse
from time_utils import ensure_timezone
from utils import (
    AUDIO_FILE_PREFIX,
    IMAGE_TYPES,
    REPORT_FILE_PREFIX,
    THUMBNAIL_PREFIX,
    VIDEO_FILE_PREFIX,
    delete_s3_urls,
    upload_to_s3,
)

logger = logging.getLogger(__name__)

FileDeleter = Callable[[Iterable[Optional[str]]], Tuple[bool, Optional[str]]]
Notifier = Callable[[str, str, str, dict], None]

FILE_PREFIXES = {
    ContentType.AUDIO: AUDIO_FILE_PREFIX,
    ContentType.VIDEO: VIDEO_FILE_PREFIX,
    ContentType.PRAKERIN: REPORT_FILE_PREFIX,
}

APPROVED_TEMPLATE = "submission-approved"
REJECTED_TEMPLATE = "submission-rejected"
PERSIST_ATTEMPTS = 2


def cleanup_uploads(urls: List[str], delete_files: FileDeleter) -> None:
    if not urls:
        return
    try:
        success, error = delete_files(urls)
    except Exception:
        logger.exception("Cleanup of stored files failed: %s", urls)
        return
    if success:
        logger.info("Removed %s stored file(s)", len(urls))
    else:
        logger.warning("Cleanup of stored files failed: %s", error)


def store_submission_assets(
    payload: SubmissionCreate,
    thumbnail: Optional[UploadFile] = None,
    file: Optional[UploadFile] = None,
    uploader: Callable[..., str] = upload_to_s3,
    delete_files: FileDeleter = delete_s3_urls,
) -> List[str]:
    """Upload the submission's binaries and point the content payload at them.

    Returns the uploaded URLs so intake can remove them again if anything after
    this point fails.
    """
    content_payload = payload.payload()
    if content_payload is None:
        return []

    uploaded: List[str] = []
    try:
        if thumbnail is not None:
            url = uploader(thumbnail, THUMBNAIL_PREFIX, allowed_types=IMAGE_TYPES)
            uploaded.append(url)
            content_payload.thumbnail = url
        prefix = FILE_PREFIXES.get(ContentType[payload.type.name])
        if file is not None and prefix:
            url = uploader(file, prefix)
            uploaded.append(url)
            content_payload.file_url = url
    except Exception:
        cleanup_uploads(uploaded, delete_files)
        raise
    return uploaded


def _has_submitted(db: Session, student: Student, competition: Competition) -> bool:
    return (
        db.query(Submission.id)
        .filter(Submission.student_id == student.id, Submission.competition_id == competition.id)
        .first()
        is not None
    )


def _persist_submission(
    db: Session,
    adapter: Callable[..., dict],
    content_payload,
    user: User,
    student: Student,
    competition: Competition,
) -> Tuple[Submission, Content]:
    # A unique violation is either this student's concurrent duplicate or a
    # content slug taken between the availability check and the insert.
    for attempt in range(1, PERSIST_ATTEMPTS + 1):
        try:
            result = adapter(db, content_payload, user)
            content = db.query(Content).filter(Content.uuid == result["data"]["uuid"]).first()
            if content is None or content.type != competition.type:
                raise TypeMismatchError()

            submission = Submission(student_id=student.id, content_id=content.id, competition_id=competition.id)
            db.add(submission)
            db.commit()
            return submission, content
        except IntegrityError:
            db.rollback()
            if _has_submitted(db, student, competition):
                raise DuplicateSubmissionError()
            logger.warning(
                "Submission insert for competition %s by student %s conflicted (attempt %s/%s)",
                competition.slug,
                student.uuid,
                attempt,
                PERSIST_ATTEMPTS,
            )
    raise SubmissionConflictError()


def submit_to_competition(
    db: Session,
    user: User,
    payload: SubmissionCreate,
    now: datetime,
    uploaded_urls: Optional[List[str]] = None,
    delete_files: FileDeleter = delete_s3_urls,
) -> dict:
    uploaded = [url for url in (uploaded_urls or []) if url]
    try:
        competition = get_competition_by_slug_or_404(db, payload.competition_slug)
        if ensure_timezone(now) > ensure_timezone(competition.submission_deadline):
            raise DeadlinePassedError()

        adapter = CONTENT_ADAPTERS.get(ContentType[payload.type.name])
        content_payload = payload.payload()
        if adapter is None or content_payload is None:
            raise TypeMismatchError(f"Content type {payload.type.value} cannot be submitted to a competition")

        student = db.query(Student).filter(Student.user_id == user.id).first()
        if not student:
            raise NotFoundError("Student profile not found")

        if _has_submitted(db, student, competition):
            raise DuplicateSubmissionError()

        submission, content = _persist_submission(db, adapter, content_payload, user, student, competition)
    except Exception:
        db.rollback()
        cleanup_uploads(uploaded, delete_files)
        raise

    db.refresh(submission)
    logger.info("Submission %s created for competition %s by student %s", submission.uuid, competition.slug, student.uuid)
    data = SubmissionResponse(
        uuid=submission.uuid,
        student_uuid=student.uuid,
        content_uuid=content.uuid,
        competition_slug=competition.slug,
        created_at=submission.created_at,
    )
    return {"status": "success", "message": "Submission created successfully!", "data": data.model_dump(mode="json")}


def _load_submission_for_moderation(db: Session, submission_uuid: str) -> Submission:
    submission = (
        db.query(Submission)
        .options(
            joinedload(Submission.competition),
            joinedload(Submission.content),
            joinedload(Submission.student).joinedload(Student.user),
        )
        .filter(Submission.uuid == submission_uuid)
        .first()
    )
    if not submission:
        raise NotFoundError("Submission not found")
    return submission


def _format_date(value: Optional[datetime]) -> str:
    value = ensure_timezone(value)
    return value.strftime("%d %B %Y") if value else ""


def build_notification_context(submission: Submission, reason: Optional[str] = None) -> dict:
    competition: Competition = submission.competition
    context = {
        "name": submission.student.name,
        "competition_name": competition.title,
        "title_submission": submission.content.title,
        "submission_id": submission.uuid,
        "submission_date": _format_date(submission.created_at),
        "judging_dates": f"{_format_date(competition.start_date)} - {_format_date(competition.end_date)}",
        "announcement_date": _format_date(competition.end_date),
    }
    if reason:
        context["reason"] = reason
    return context


def _prepare_notification(db: Session, submission_uuid: str, reason: Optional[str]) -> Tuple[str, str, dict]:
    submission = _load_submission_for_moderation(db, submission_uuid)
    return submission.content.uuid, submission.student.user.email, build_notification_context(submission, reason)


async def _moderate(
    db: Session,
    submission_uuid: str,
    new_status: ContentStatus,
    template: str,
    subject: str,
    reason: Optional[str],
    notifier: Notifier,
) -> dict:
    content_uuid, recipient, context = await asyncio.to_thread(_prepare_notification, db, submission_uuid, reason)

    notification_error = None
    try:
        await asyncio.to_thread(notifier, recipient, subject, template, context)
        logger.info("Sent %s notification for submission %s to %s", template, submission_uuid, recipient)
    except Exception as exc:
        notification_error = str(exc) or exc.__class__.__name__
        logger.exception("Failed to send %s notification for submission %s", template, submission_uuid)

    try:
        result = await asyncio.to_thread(update_content_status, db, content_uuid, new_status)
    except Exception:
        db.rollback()
        logger.exception("Failed to set content status %s for submission %s", new_status.value, submission_uuid)
        raise

    return {
        "status": "success",
        "message": f"Submission {new_status.value.lower()}",
        "data": {
            "submission_uuid": submission_uuid,
            "content_uuid": result["uuid"],
            "content_status": result["status"],
            "notification_sent": notification_error is None,
            "notification_error": notification_error,
        },
    }


async def approve_submission(db: Session, submission_uuid: str, notifier: Notifier = send_mail) -> dict:
    return await _moderate(
        db,
        submission_uuid,
        ContentStatus.APPROVED,
        APPROVED_TEMPLATE,
        "Your competition submission has been approved",
        None,
        notifier,
    )


async def reject_submission(
    db: Session,
    submission_uuid: str,
    reason: Optional[str] = None,
    notifier: Notifier = send_mail,
) -> dict:
    return await _moderate(
        db,
        submission_uuid,
        ContentStatus.REJECTED,
        REJECTED_TEMPLATE,
        "Update on your competition submission",
        reason,
        notifier,
    )
