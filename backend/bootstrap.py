from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from auth import get_password_hash
from database import Base, engine, get_db
from models import SystemConfig, User, UserRole

logger = logging.getLogger(__name__)

MIGRATION_MARKER_KEY = "migration:backend_bootstrap:v1"
DEFAULT_STAFF_EMAIL = "staff@skilins.id"
DEFAULT_STAFF_PASSWORD = "admin123"


def has_bootstrap_marker() -> bool:
    SystemConfig.__table__.create(bind=engine, checkfirst=True)
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        return marker is not None
    finally:
        db.close()


def set_bootstrap_marker() -> None:
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        value = datetime.now(timezone.utc).isoformat()
        if marker:
            marker.value = value
        else:
            db.add(SystemConfig(key=MIGRATION_MARKER_KEY, value=value))
        db.commit()
    finally:
        db.close()


def clear_bootstrap_marker() -> bool:
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        if not marker:
            return False
        db.delete(marker)
        db.commit()
        return True
    finally:
        db.close()


def ensure_default_staff(db: Session) -> User:
    email = os.environ.get("DEFAULT_STAFF_EMAIL", DEFAULT_STAFF_EMAIL).strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user:
        user = User(
            email=email,
            hashed_password=get_password_hash(os.environ.get("DEFAULT_STAFF_PASSWORD", DEFAULT_STAFF_PASSWORD)),
            full_name="Skilins Staff",
            role=UserRole.STAFF,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created default staff account %s", email)
    elif user.role != UserRole.STAFF:
        user.role = UserRole.STAFF
        db.commit()
        logger.info("Promoted %s to staff", email)
    return user


def run_bootstrap_migrations() -> None:
    Base.metadata.create_all(bind=engine)

    db = next(get_db())
    try:
        ensure_default_staff(db)
    finally:
        db.close()
