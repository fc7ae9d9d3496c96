import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

_DB_DIR = tempfile.mkdtemp(prefix="skilins-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["APP_TIMEZONE"] = "UTC"
os.environ["WINNER_SCHEDULER_ENABLED"] = "false"
os.environ.setdefault("JWT_SECRET_KEY", "skilins-test-secret-key-0123456789abcdef")

import pytest

from auth import create_access_token, get_password_hash
from database import Base, SessionLocal, engine
from models import (
    AudioPodcast,
    Competition,
    Content,
    ContentStatus,
    ContentType,
    EvaluationParameter,
    Judge,
    Rating,
    Score,
    Student,
    Submission,
    User,
    UserRole,
    VideoPodcast,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)


class Factory:
    """Small helpers that persist rows with sensible defaults."""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def user(self, role=UserRole.USER, email=None, full_name=None):
        n = self._next()
        user = User(
            email=email or f"user{n}@example.com",
            hashed_password=PASSWORD_HASH,
            full_name=full_name or f"User {n}",
            role=role,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def student(self, name=None, email=None):
        user = self.user(UserRole.STUDENT, email=email, full_name=name)
        student = Student(user_id=user.id, name=name or user.full_name, nis=f"NIS{user.id:04d}")
        self.db.add(student)
        self.db.commit()
        return student

    def judge(self, competition=None, full_name=None):
        user = self.user(UserRole.JUDGE, full_name=full_name)
        judge = Judge(user_id=user.id, competition_id=competition.id if competition else None, role="Mentor")
        self.db.add(judge)
        self.db.commit()
        return judge

    def competition(
        self,
        title=None,
        content_type=ContentType.AUDIO,
        start_date=None,
        end_date=None,
        submission_deadline=None,
        winner_count=3,
        weights=(40, 60),
    ):
        n = self._next()
        title = title or f"Competition number {n}"
        competition = Competition(
            title=title,
            slug=f"competition-{n}",
            type=content_type,
            description="A competition",
            start_date=start_date or NOW - timedelta(days=10),
            end_date=end_date or NOW + timedelta(days=10),
            submission_deadline=submission_deadline or NOW + timedelta(days=5),
            winner_count=winner_count,
        )
        competition.parameters = [
            EvaluationParameter(name=f"Criterion {index + 1}", weight=weight) for index, weight in enumerate(weights)
        ]
        self.db.add(competition)
        self.db.commit()
        return competition

    def content(self, content_type=ContentType.AUDIO, status=ContentStatus.APPROVED, creator=None, title=None):
        n = self._next()
        content = Content(
            type=content_type,
            title=title or f"Submitted content {n}",
            slug=f"content-{n}",
            subjects=[],
            tags=[],
            status=status,
        )
        if content_type == ContentType.AUDIO and creator is not None:
            content.audio_podcast = AudioPodcast(creator_id=creator.id, duration=120)
        if content_type == ContentType.VIDEO and creator is not None:
            content.video_podcast = VideoPodcast(creator_id=creator.id, duration=120)
        self.db.add(content)
        self.db.commit()
        return content

    def submission(self, competition, student=None, status=ContentStatus.APPROVED):
        student = student or self.student()
        content = self.content(competition.type, status=status, creator=student.user)
        submission = Submission(student_id=student.id, content_id=content.id, competition_id=competition.id)
        self.db.add(submission)
        self.db.commit()
        return submission

    def score(self, judge, submission, parameter, value, notes=None):
        score = Score(
            judge_id=judge.id,
            submission_id=submission.id,
            parameter_id=parameter.id,
            score=value,
            notes=notes,
        )
        self.db.add(score)
        self.db.commit()
        return score

    def rating(self, content, value):
        rater = self.user()
        rating = Rating(content_id=content.id, rating_by=rater.id, rating_value=value)
        self.db.add(rating)
        self.db.commit()
        return rating


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def headers_for():
    def _headers(user: User) -> dict:
        token = create_access_token({"sub": user.uuid, "role": user.role.value})
        return {"Authorization": f"Bearer {token}"}

    return _headers
