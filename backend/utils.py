import logging
import math
import os
import re
import uuid
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Type, TypeVar
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from fastapi import UploadFile
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Query, Session

from errors import StorageError, ValidationError
from models import AdminLog, User

logger = logging.getLogger(__name__)

AWS_REGION = os.environ.get("AWS_REGION")
S3_BUCKET_NAME = os.environ.get("S3_BUCKET_NAME")
S3_ACCESS_KEY = os.environ.get("S3_ACCESS_KEY") or os.environ.get("AWS_ACCESS_KEY_ID")
S3_SECRET_KEY = os.environ.get("S3_SECRET_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY")

STORAGE_ROOT = "skilins_storage"
THUMBNAIL_PREFIX = f"{STORAGE_ROOT}/public/images/thumbnails"
AUDIO_FILE_PREFIX = f"{STORAGE_ROOT}/public/files/audios"
VIDEO_FILE_PREFIX = f"{STORAGE_ROOT}/public/files/videos"
REPORT_FILE_PREFIX = f"{STORAGE_ROOT}/public/files/reports"
IMAGE_TYPES = ["image/png", "image/jpeg", "image/jpg"]

S3_CLIENT = None
if AWS_REGION and S3_BUCKET_NAME and S3_ACCESS_KEY and S3_SECRET_KEY:
    s3_config = Config(signature_version="s3v4", s3={"addressing_style": "virtual"})
    S3_CLIENT = boto3.client(
        "s3",
        region_name=AWS_REGION,
        aws_access_key_id=S3_ACCESS_KEY,
        aws_secret_access_key=S3_SECRET_KEY,
        endpoint_url=f"https://s3.{AWS_REGION}.amazonaws.com",
        config=s3_config,
    )


def log_admin_action(db: Session, admin: Optional[User], action: str, method: Optional[str] = None, path: Optional[str] = None, meta: Optional[dict] = None):
    db.add(AdminLog(
        admin_id=admin.id if admin else None,
        admin_email=admin.email if admin else "",
        admin_name=admin.full_name if admin else "system",
        action=action,
        method=method,
        path=path,
        meta=meta
    ))
    db.commit()


def slugify(value: str) -> str:
    cleaned = re.sub(r"[*+~.()'\"!:@]", "", (value or "").strip().lower())
    cleaned = re.sub(r"[^a-z0-9]+", "-", cleaned).strip("-")
    return cleaned[:250] if cleaned else "item"


def next_slug(db: Session, model, title: str, exclude_id: Optional[int] = None) -> str:
    base = slugify(title)
    slug = base
    counter = 1
    while True:
        query = db.query(model.id).filter(model.slug == slug)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if not query.first():
            return slug
        slug = f"{base}-{counter}"
        counter += 1


def paginate(query: Query, page: Optional[int], limit: Optional[int]) -> Tuple[List[Any], int]:
    total = query.order_by(None).count()
    if page and limit:
        query = query.offset((page - 1) * limit).limit(limit)
    return query.all(), total


def page_envelope(data: List[Any], total: int, page: Optional[int], limit: Optional[int]) -> dict:
    total_pages = math.ceil(total / limit) if limit else 1
    return {
        "status": "success",
        "data": data,
        "totalPages": total_pages,
        "page": page or 1,
        "lastPage": total_pages,
    }


def _build_s3_url(key: str) -> str:
    if not S3_BUCKET_NAME or not AWS_REGION:
        raise RuntimeError("S3 configuration missing")
    return f"https://{S3_BUCKET_NAME}.s3.{AWS_REGION}.amazonaws.com/{key}"


def _extract_s3_key_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        parsed = urlparse(url)
        host = (parsed.netloc or "").lower()
        path = (parsed.path or "").lstrip("/")
        if not host or not path:
            return None
        if not S3_BUCKET_NAME:
            return None

        bucket = S3_BUCKET_NAME.lower()
        if host == f"{bucket}.s3.amazonaws.com" or host.startswith(f"{bucket}.s3."):
            return unquote(path)
        return None
    except ValueError:
        return None


def upload_to_s3(file: UploadFile, key_prefix: str, allowed_types: Optional[List[str]] = None) -> str:
    if not S3_CLIENT or not S3_BUCKET_NAME or not AWS_REGION:
        raise StorageError("S3 not configured")
    if not file.content_type:
        raise ValidationError("Missing file content type")
    if allowed_types and file.content_type not in allowed_types:
        raise ValidationError("Invalid file type")

    extension = Path(file.filename or "").suffix.lower()
    unique_name = f"{uuid.uuid4().hex}{extension}"
    key = f"{key_prefix.rstrip('/')}/{unique_name}"

    try:
        S3_CLIENT.upload_fileobj(
            file.file,
            S3_BUCKET_NAME,
            key,
            ExtraArgs={"ContentType": file.content_type}
        )
    except Exception as exc:
        logger.error("S3 upload failed for %s: %s", key, exc)
        raise StorageError("Upload failed") from exc

    return _build_s3_url(key)


def delete_s3_urls(urls: Iterable[Optional[str]]) -> Tuple[bool, Optional[str]]:
    """Delete previously uploaded objects; returns (success, error) instead of raising."""
    keys = [key for key in (_extract_s3_key_from_url(url) for url in urls) if key]
    if not keys:
        return True, None
    if not S3_CLIENT or not S3_BUCKET_NAME:
        return False, "S3 not configured"
    try:
        S3_CLIENT.delete_objects(
            Bucket=S3_BUCKET_NAME,
            Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
        )
    except Exception as exc:
        return False, str(exc)
    return True, None


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_form_model(model: Type[ModelT], raw: str) -> ModelT:
    """Validate a JSON document sent as a multipart form field."""
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False))
