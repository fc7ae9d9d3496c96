from bootstrap import ensure_default_staff
from content_service import update_content_status
from errors import NotFoundError
from models import ContentStatus, User, UserRole
from utils import delete_s3_urls, page_envelope, slugify

import pytest


def test_slugify():
    assert slugify("Lomba Podcast: Edisi #1!") == "lomba-podcast-edisi-1"
    assert slugify("   ") == "item"


def test_page_envelope_without_limit_is_single_page():
    assert page_envelope([1, 2], total=2, page=None, limit=None) == {
        "status": "success",
        "data": [1, 2],
        "totalPages": 1,
        "page": 1,
        "lastPage": 1,
    }


def test_delete_ignores_foreign_urls():
    assert delete_s3_urls([None, "https://example.com/file.png"]) == (True, None)


def test_update_content_status(db, make):
    content = make.content(status=ContentStatus.PENDING)
    assert update_content_status(db, content.uuid, ContentStatus.REJECTED) == {
        "uuid": content.uuid,
        "status": "REJECTED",
    }
    with pytest.raises(NotFoundError):
        update_content_status(db, "missing", ContentStatus.APPROVED)


def test_default_staff_is_created_once(db, monkeypatch):
    monkeypatch.setenv("DEFAULT_STAFF_EMAIL", "Admin@Skilins.id")
    first = ensure_default_staff(db)
    second = ensure_default_staff(db)

    assert first.id == second.id
    assert first.email == "admin@skilins.id"
    assert db.query(User).filter(User.role == UserRole.STAFF).count() == 1
