from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Any, Dict, Union
from enum import Enum
from datetime import datetime


class ContentTypeEnum(str, Enum):
    AUDIO = "AUDIO"
    VIDEO = "VIDEO"
    PRAKERIN = "PRAKERIN"
    EBOOK = "EBOOK"
    NOVEL = "NOVEL"
    BLOG = "BLOG"
    STORY = "STORY"


class ContentStatusEnum(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


def _strip_optional(value: Optional[str]) -> Optional[str]:
    raw = str(value or "").strip()
    return raw or None


# Envelopes
class ApiResponse(BaseModel):
    status: str = "success"
    message: Optional[str] = None
    data: Any = None


class PaginatedResponse(BaseModel):
    status: str = "success"
    data: List[Any]
    totalPages: int
    page: int
    lastPage: int


# Content payloads
class ContentBase(BaseModel):
    title: str = Field(..., min_length=10, max_length=255)
    thumbnail: Optional[str] = None
    description: Optional[str] = None
    subjects: List[str] = Field(default_factory=list)
    category_name: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", "subjects", mode="before")
    @classmethod
    def normalize_string_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


class AudioPodcastCreate(ContentBase):
    duration: float = Field(..., gt=0)
    file_url: Optional[str] = None
    creator_uuid: Optional[str] = None


class VideoPodcastCreate(ContentBase):
    duration: float = Field(..., gt=0)
    file_url: Optional[str] = None
    creator_uuid: Optional[str] = None


class PrakerinCreate(ContentBase):
    pages: int = Field(..., ge=1)
    file_url: Optional[str] = None
    author_uuid: Optional[str] = None


SUBMISSION_PAYLOAD_FIELDS: Dict[ContentTypeEnum, str] = {
    ContentTypeEnum.AUDIO: "audio_data",
    ContentTypeEnum.VIDEO: "video_data",
    ContentTypeEnum.PRAKERIN: "prakerin_data",
}


class SubmissionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    competition_slug: str = Field(..., min_length=1)
    type: ContentTypeEnum
    audio_data: Optional[AudioPodcastCreate] = Field(None, alias="audioData")
    video_data: Optional[VideoPodcastCreate] = Field(None, alias="videoData")
    prakerin_data: Optional[PrakerinCreate] = Field(None, alias="prakerinData")

    @model_validator(mode="after")
    def validate_single_payload(self):
        present = [name for name in SUBMISSION_PAYLOAD_FIELDS.values() if getattr(self, name) is not None]
        if len(present) > 1:
            raise ValueError("Exactly one content payload may be supplied")
        expected = SUBMISSION_PAYLOAD_FIELDS.get(self.type)
        if expected and expected not in present:
            raise ValueError(f"{expected} is required for type {self.type.value}")
        if present and expected != present[0]:
            raise ValueError(f"{present[0]} does not match type {self.type.value}")
        return self

    def payload(self) -> Optional[Union[AudioPodcastCreate, VideoPodcastCreate, PrakerinCreate]]:
        field_name = SUBMISSION_PAYLOAD_FIELDS.get(self.type)
        return getattr(self, field_name) if field_name else None


class SubmissionResponse(BaseModel):
    uuid: str
    student_uuid: str
    content_uuid: str
    competition_slug: str
    created_at: Optional[datetime] = None


class RejectSubmissionRequest(BaseModel):
    reason: Optional[str] = None

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v):
        return _strip_optional(v)


class ContentStatusUpdate(BaseModel):
    status: ContentStatusEnum


class ContentStatusResponse(BaseModel):
    uuid: str
    status: ContentStatusEnum


# Competition schemas
class EvaluationParameterIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parameter_name: str = Field(..., min_length=1, max_length=150, alias="parameterName")
    weight: float = Field(..., gt=0)


class EvaluationParameterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    name: str
    weight: float


def _check_schedule(start_date, end_date, submission_deadline):
    if start_date and end_date and start_date > end_date:
        raise ValueError("start_date must not be after end_date")
    if submission_deadline and end_date and submission_deadline > end_date:
        raise ValueError("submission_deadline must not be after end_date")


class CompetitionCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    type: ContentTypeEnum
    description: str = Field(..., min_length=1)
    guide: Optional[str] = None
    thumbnail: Optional[str] = None
    start_date: datetime
    end_date: datetime
    submission_deadline: datetime
    winner_count: int = Field(3, ge=1)
    parameters: List[EvaluationParameterIn] = Field(default_factory=list)
    judges: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_schedule(self):
        _check_schedule(self.start_date, self.end_date, self.submission_deadline)
        return self


class CompetitionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    type: Optional[ContentTypeEnum] = None
    description: Optional[str] = None
    guide: Optional[str] = None
    thumbnail: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None
    winner_count: Optional[int] = Field(None, ge=1)
    parameters: Optional[List[EvaluationParameterIn]] = None
    judges: Optional[List[str]] = None

    @model_validator(mode="after")
    def validate_schedule(self):
        _check_schedule(self.start_date, self.end_date, self.submission_deadline)
        return self


class CompetitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    slug: str
    title: str
    type: ContentTypeEnum
    thumbnail: Optional[str] = None
    description: str
    guide: Optional[str] = None
    start_date: datetime
    end_date: datetime
    submission_deadline: datetime
    winner_count: int
    parameters: List[EvaluationParameterResponse] = Field(default_factory=list)


class CompetitionQuery(BaseModel):
    page: Optional[int] = Field(None, ge=1)
    limit: Optional[int] = Field(None, ge=1, le=100)
    search: Optional[str] = None
    type: Optional[ContentTypeEnum] = None


# Judge schemas
class JudgeRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=2, max_length=255)
    role: str = Field(..., min_length=1, max_length=255)
    linkedin: Optional[str] = None
    instagram: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return str(v or "").strip().lower()

    @field_validator("linkedin", "instagram", mode="before")
    @classmethod
    def strip_links(cls, v):
        return _strip_optional(v)


class JudgeUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=255)
    role: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None


class JudgeResponse(BaseModel):
    uuid: str
    profile: Optional[str] = None
    full_name: str
    email: str
    role: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None
    competition: Optional[str] = None


class ParameterScoreEntry(BaseModel):
    parameter_uuid: str = Field(..., min_length=1)
    score: float = Field(..., ge=0, le=5)
    notes: Optional[str] = None


class EvaluateSubmissionRequest(BaseModel):
    submission_uuid: str = Field(..., min_length=1)
    parameter_scores: List[ParameterScoreEntry] = Field(..., min_length=1)

    @field_validator("parameter_scores")
    @classmethod
    def unique_parameters(cls, v):
        seen = set()
        for entry in v:
            if entry.parameter_uuid in seen:
                raise ValueError(f"Duplicate score for parameter {entry.parameter_uuid}")
            seen.add(entry.parameter_uuid)
        return v


class ScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    score: float
    notes: Optional[str] = None


# Scoring / winners
class StandingEntry(BaseModel):
    rank: int
    submission_uuid: str
    student_name: str
    content_title: str
    content_status: ContentStatusEnum
    final_score: float


class WinnerResponse(BaseModel):
    rank: int
    final_score: Optional[float] = None
    submission_uuid: str
    content_uuid: str
    content_title: str
    student_uuid: str
    student_name: str


# Auth
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return str(v or "").strip().lower()


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    uuid: str
