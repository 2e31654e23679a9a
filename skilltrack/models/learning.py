from datetime import datetime, timezone
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, field_validator


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def as_utc(value: datetime) -> datetime:
    """Naive timestamps are stored as UTC; make them aware so they compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


class Skill(BaseModel):
    name: str
    level: float = 0.0
    normalized_score: float = 0.0

    @field_validator("level")
    @classmethod
    def clamp_level(cls, v: float) -> float:
        return clamp(v, 0.0, 100.0)

    @field_validator("normalized_score")
    @classmethod
    def clamp_normalized(cls, v: float) -> float:
        return clamp(v, 0.0, 1.0)


class Profile(BaseModel):
    id: int
    user_id: int
    skills: list[Skill] = []
    experience: Optional[str] = None
    education: Optional[str] = None
    github: Optional[str] = None
    linkedin: Optional[str] = None
    portfolio: Optional[str] = None
    resume_data: Optional[dict] = None
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None


class ParsedResume(BaseModel):
    skills: list[Skill] = []
    experience: Optional[str] = None
    education: Optional[str] = None
    # True when produced by keyword matching instead of the AI parser
    degraded: bool = False


class Question(BaseModel):
    id: str
    question: str
    options: list[str]
    correct_answer: int
    explanation: Optional[str] = None


class Assessment(BaseModel):
    id: int
    title: str
    technology: str
    difficulty: str
    questions: list[Question] = []
    time_limit: int
    created_at: Optional[UTCDateTime] = None


class Answer(BaseModel):
    question_id: str
    selected_answer: int


class AssessmentRecord(BaseModel):
    """A completed assessment joined with its definition. Immutable once stored."""

    id: int
    assessment_id: int
    technology: str
    difficulty: str
    title: str = ""
    score: float
    completed_at: UTCDateTime
    correct_answers: int
    total_questions: int
    time_spent: Optional[int] = None
    answers: list[Answer] = []

    model_config = {"frozen": True}


class LearningModule(BaseModel):
    id: int
    title: str
    description: str = ""
    technology: str
    difficulty: str
    duration: int  # hours
    rating: float = 0.0
    content: Optional[dict] = None
    prerequisites: list[str] = []
    created_at: Optional[UTCDateTime] = None


class ModuleProgressRecord(BaseModel):
    id: Optional[int] = None
    module_id: int
    progress: float = 0.0
    started_at: UTCDateTime
    last_accessed_at: UTCDateTime
    completed_at: Optional[UTCDateTime] = None
    module: Optional[LearningModule] = None


class Recommendation(BaseModel):
    module_id: int
    score: float
    reason: str

    @field_validator("score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        return clamp(v, 0.0, 1.0)


class StoredRecommendation(Recommendation):
    id: int
    created_at: Optional[UTCDateTime] = None
    module: Optional[LearningModule] = None


AlertType = Literal["stagnation", "achievement", "reminder"]


class Alert(BaseModel):
    type: AlertType
    message: str
    id: Optional[int] = None
    read: bool = False
    created_at: Optional[UTCDateTime] = None


class SkillGap(BaseModel):
    skill: str
    gap_score: float


class LearningPattern(BaseModel):
    preferred_difficulty: str = "intermediate"
    preferred_duration: int = 3
    completion_rate: float = 0.0
    avg_time_to_complete_hours: float = 0.0


class AISuggestion(BaseModel):
    technology: str
    reason: Optional[str] = ""
    priority: float = 0.0

    @field_validator("reason")
    @classmethod
    def blank_reason(cls, v: Optional[str]) -> str:
        return v or ""

    @field_validator("priority")
    @classmethod
    def clamp_priority(cls, v: float) -> float:
        return clamp(v, 0.0, 100.0)


class ScorePoint(BaseModel):
    score: float
    date: UTCDateTime


Trend = Literal["improving", "stable", "declining"]


class SkillTrend(BaseModel):
    technology: str
    scores: list[ScorePoint]
    trend: Trend = "stable"
