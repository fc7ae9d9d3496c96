import logging
from typing import Callable, Dict, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from errors import NotFoundError
from models import AudioPodcast, Content, ContentStatus, ContentType, Prakerin, Rating, Student, User, VideoPodcast
from schemas import AudioPodcastCreate, PrakerinCreate, VideoPodcastCreate
from utils import next_slug

logger = logging.getLogger(__name__)

ContentPayload = Union[AudioPodcastCreate, VideoPodcastCreate, PrakerinCreate]


def _get_user_or_404(db: Session, user_uuid: str) -> User:
    user = db.query(User).filter(User.uuid == user_uuid).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def _new_content(db: Session, content_type: ContentType, payload: ContentPayload) -> Content:
    content = Content(
        type=content_type,
        title=payload.title,
        slug=next_slug(db, Content, payload.title),
        thumbnail=payload.thumbnail,
        description=payload.description,
        subjects=list(payload.subjects),
        tags=list(payload.tags),
        category_name=payload.category_name,
        status=ContentStatus.PENDING,
    )
    db.add(content)
    return content


def _handle(content: Content, message: str) -> dict:
    return {
        "status": "success",
        "message": message,
        "data": {"uuid": content.uuid, "type": content.type.value},
    }


def create_audio_podcast(db: Session, payload: AudioPodcastCreate, submitter: User) -> dict:
    creator = _get_user_or_404(db, payload.creator_uuid) if payload.creator_uuid else submitter
    content = _new_content(db, ContentType.AUDIO, payload)
    content.audio_podcast = AudioPodcast(creator_id=creator.id, duration=payload.duration, file_url=payload.file_url)
    db.flush()
    return _handle(content, "audio successfully uploaded!")


def create_video_podcast(db: Session, payload: VideoPodcastCreate, submitter: User) -> dict:
    creator = _get_user_or_404(db, payload.creator_uuid) if payload.creator_uuid else submitter
    content = _new_content(db, ContentType.VIDEO, payload)
    content.video_podcast = VideoPodcast(creator_id=creator.id, duration=payload.duration, file_url=payload.file_url)
    db.flush()
    return _handle(content, "video successfully uploaded!")


def create_prakerin(db: Session, payload: PrakerinCreate, submitter: User) -> dict:
    author_user = _get_user_or_404(db, payload.author_uuid) if payload.author_uuid else submitter
    student = db.query(Student).filter(Student.user_id == author_user.id).first()
    if not student:
        raise NotFoundError("Student profile not found")
    content = _new_content(db, ContentType.PRAKERIN, payload)
    content.prakerin = Prakerin(author_id=student.id, pages=payload.pages, file_url=payload.file_url)
    db.flush()
    return _handle(content, "prakerin added successfully!")


CONTENT_ADAPTERS: Dict[ContentType, Callable[[Session, ContentPayload, User], dict]] = {
    ContentType.AUDIO: create_audio_podcast,
    ContentType.VIDEO: create_video_podcast,
    ContentType.PRAKERIN: create_prakerin,
}


def update_content_status(db: Session, content_uuid: str, new_status: ContentStatus) -> dict:
    content = db.query(Content).filter(Content.uuid == content_uuid).first()
    if not content:
        raise NotFoundError("Content not found")
    previous = content.status
    content.status = new_status
    db.commit()
    logger.info("Content %s status %s -> %s", content_uuid, previous.value, new_status.value)
    return {"uuid": content.uuid, "status": content.status.value}


def average_rating(db: Session, content_id: int) -> Optional[float]:
    value = db.query(func.avg(Rating.rating_value)).filter(Rating.content_id == content_id).scalar()
    return float(value) if value is not None else None
