#!/usr/bin/env python3
import os
import sys
from datetime import timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth import get_password_hash
from database import Base, SessionLocal, engine
from models import (
    AudioPodcast,
    Competition,
    Content,
    ContentStatus,
    ContentType,
    EvaluationParameter,
    Judge,
    Student,
    Submission,
    User,
    UserRole,
)
from time_utils import now_tz
from utils import next_slug

DEMO_PASSWORD = os.environ.get("DEMO_PASSWORD", "demo12345")
STUDENT_NAMES = ["Ayu Lestari", "Bima Saputra", "Citra Dewi", "Dimas Pratama"]


def _user(db, email: str, name: str, role: UserRole) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(email=email, hashed_password=get_password_hash(DEMO_PASSWORD), full_name=name, role=role)
    db.add(user)
    db.flush()
    return user


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        now = now_tz()
        title = "Demo Audio Podcast Festival"
        competition = db.query(Competition).filter(Competition.title == title).first()
        if competition:
            print(f"Demo competition already present: {competition.slug}")
            return

        competition = Competition(
            title=title,
            slug=next_slug(db, Competition, title),
            type=ContentType.AUDIO,
            description="Seeded competition for local development.",
            start_date=now - timedelta(days=14),
            end_date=now + timedelta(days=7),
            submission_deadline=now + timedelta(days=3),
            winner_count=3,
        )
        competition.parameters = [
            EvaluationParameter(name="Content", weight=40),
            EvaluationParameter(name="Delivery", weight=35),
            EvaluationParameter(name="Audio quality", weight=25),
        ]
        db.add(competition)
        db.flush()

        judge_user = _user(db, "judge@skilins.id", "Demo Judge", UserRole.JUDGE)
        if not judge_user.judge:
            db.add(Judge(user_id=judge_user.id, competition_id=competition.id, role="Podcaster"))

        for index, name in enumerate(STUDENT_NAMES, start=1):
            user = _user(db, f"student{index}@skilins.id", name, UserRole.STUDENT)
            student = user.student or Student(user_id=user.id, name=name, nis=f"2024{index:04d}", major="Multimedia")
            db.add(student)
            db.flush()
            content_title = f"{name} talks about school life"
            content = Content(
                type=ContentType.AUDIO,
                title=content_title,
                slug=next_slug(db, Content, content_title),
                description="Seeded audio podcast.",
                subjects=["Bahasa Indonesia"],
                tags=["podcast"],
                status=ContentStatus.APPROVED if index % 2 else ContentStatus.PENDING,
            )
            content.audio_podcast = AudioPodcast(creator_id=user.id, duration=300 + index * 30)
            db.add(content)
            db.flush()
            db.add(Submission(student_id=student.id, content_id=content.id, competition_id=competition.id))

        db.commit()
        print(f"Seeded demo competition {competition.slug} with {len(STUDENT_NAMES)} submissions")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
