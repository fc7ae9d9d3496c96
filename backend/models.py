import enum
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Float, Enum as SQLEnum, ForeignKey, Text, JSON, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class UserRole(enum.Enum):
    USER = "User"
    STUDENT = "Student"
    STAFF = "Staff"
    JUDGE = "Judge"


class ContentType(enum.Enum):
    AUDIO = "AUDIO"
    VIDEO = "VIDEO"
    PRAKERIN = "PRAKERIN"
    EBOOK = "EBOOK"
    NOVEL = "NOVEL"
    BLOG = "BLOG"
    STORY = "STORY"


class ContentStatus(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    profile_url = Column(String(500), nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    student = relationship("Student", back_populates="user", uselist=False)
    judge = relationship("Judge", back_populates="user", uselist=False)


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    nis = Column(String(30), nullable=True)
    major = Column(String(150), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="student")
    submissions = relationship("Submission", back_populates="student")


class Content(Base):
    __tablename__ = "contents"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    type = Column(SQLEnum(ContentType), nullable=False)
    title = Column(String(255), nullable=False)
    slug = Column(String(300), unique=True, index=True, nullable=False)
    thumbnail = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    subjects = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)
    category_name = Column(String(120), nullable=True)
    status = Column(SQLEnum(ContentStatus), default=ContentStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    audio_podcast = relationship("AudioPodcast", back_populates="content", uselist=False, cascade="all, delete-orphan")
    video_podcast = relationship("VideoPodcast", back_populates="content", uselist=False, cascade="all, delete-orphan")
    prakerin = relationship("Prakerin", back_populates="content", uselist=False, cascade="all, delete-orphan")
    ratings = relationship("Rating", back_populates="content", cascade="all, delete-orphan")


class AudioPodcast(Base):
    __tablename__ = "audio_podcasts"

    id = Column(Integer, primary_key=True, index=True)
    content_id = Column(Integer, ForeignKey("contents.id", ondelete="CASCADE"), nullable=False, unique=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    duration = Column(Float, nullable=False)
    file_url = Column(String(500), nullable=True)

    content = relationship("Content", back_populates="audio_podcast")
    creator = relationship("User")


class VideoPodcast(Base):
    __tablename__ = "video_podcasts"

    id = Column(Integer, primary_key=True, index=True)
    content_id = Column(Integer, ForeignKey("contents.id", ondelete="CASCADE"), nullable=False, unique=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    duration = Column(Float, nullable=False)
    file_url = Column(String(500), nullable=True)

    content = relationship("Content", back_populates="video_podcast")
    creator = relationship("User")


class Prakerin(Base):
    __tablename__ = "prakerin_reports"

    id = Column(Integer, primary_key=True, index=True)
    content_id = Column(Integer, ForeignKey("contents.id", ondelete="CASCADE"), nullable=False, unique=True)
    author_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    pages = Column(Integer, nullable=False)
    file_url = Column(String(500), nullable=True)

    content = relationship("Content", back_populates="prakerin")
    author = relationship("Student")


class Rating(Base):
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    content_id = Column(Integer, ForeignKey("contents.id", ondelete="CASCADE"), nullable=False)
    rating_by = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating_value = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    content = relationship("Content", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("content_id", "rating_by", name="uq_rating_content_user"),
        CheckConstraint("rating_value BETWEEN 1 AND 5", name="ck_rating_value_range"),
    )


class Competition(Base):
    __tablename__ = "competitions"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    slug = Column(String(300), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    type = Column(SQLEnum(ContentType), nullable=False)
    thumbnail = Column(String(500), nullable=True)
    description = Column(Text, nullable=False)
    guide = Column(Text, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False, index=True)
    submission_deadline = Column(DateTime(timezone=True), nullable=False)
    winner_count = Column(Integer, default=3, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    parameters = relationship(
        "EvaluationParameter",
        back_populates="competition",
        order_by="EvaluationParameter.id",
        cascade="all, delete-orphan",
    )
    judges = relationship("Judge", back_populates="competition")
    submissions = relationship(
        "Submission",
        back_populates="competition",
        order_by="Submission.id",
        cascade="all, delete-orphan",
    )
    winners = relationship(
        "Winner",
        back_populates="competition",
        order_by="Winner.rank",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("winner_count >= 1", name="ck_competition_winner_count"),
    )


class EvaluationParameter(Base):
    __tablename__ = "evaluation_parameters"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(150), nullable=False)
    weight = Column(Float, nullable=False)

    competition = relationship("Competition", back_populates="parameters")
    scores = relationship("Score", back_populates="parameter", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("weight > 0", name="ck_evaluation_parameter_weight"),
    )


class Judge(Base):
    __tablename__ = "judges"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="SET NULL"), nullable=True)
    role = Column(String(255), nullable=True)
    linkedin = Column(String(500), nullable=True)
    instagram = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="judge")
    competition = relationship("Competition", back_populates="judges")
    scores = relationship("Score", back_populates="judge")


class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    content_id = Column(Integer, ForeignKey("contents.id", ondelete="CASCADE"), nullable=False, unique=True)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    student = relationship("Student", back_populates="submissions")
    content = relationship("Content")
    competition = relationship("Competition", back_populates="submissions")
    scores = relationship("Score", back_populates="submission", cascade="all, delete-orphan")
    winner = relationship("Winner", back_populates="submission", uselist=False)

    __table_args__ = (
        UniqueConstraint("student_id", "competition_id", name="uq_submission_student_competition"),
    )


class Score(Base):
    __tablename__ = "scores"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    judge_id = Column(Integer, ForeignKey("judges.id", ondelete="CASCADE"), nullable=False)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False)
    parameter_id = Column(Integer, ForeignKey("evaluation_parameters.id", ondelete="CASCADE"), nullable=False)
    score = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    judge = relationship("Judge", back_populates="scores")
    submission = relationship("Submission", back_populates="scores")
    parameter = relationship("EvaluationParameter", back_populates="scores")

    __table_args__ = (
        UniqueConstraint("judge_id", "submission_id", "parameter_id", name="uq_score_judge_submission_parameter"),
        CheckConstraint("score >= 0 AND score <= 5", name="ck_score_range"),
    )


class Winner(Base):
    __tablename__ = "winners"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, index=True, nullable=False, default=_uuid)
    competition_id = Column(Integer, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False)
    rank = Column(Integer, nullable=False)
    final_score = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    competition = relationship("Competition", back_populates="winners")
    submission = relationship("Submission", back_populates="winner")

    __table_args__ = (
        UniqueConstraint("competition_id", "rank", name="uq_winner_competition_rank"),
        UniqueConstraint("competition_id", "submission_id", name="uq_winner_competition_submission"),
    )


class AdminLog(Base):
    __tablename__ = "admin_logs"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, nullable=True)
    admin_email = Column(String(255), nullable=False)
    admin_name = Column(String(255), nullable=False)
    action = Column(String(255), nullable=False)
    method = Column(String(10), nullable=True)
    path = Column(String(255), nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SystemConfig(Base):
    __tablename__ = "system_config"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(String(500), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
