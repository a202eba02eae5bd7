from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CONTENT_MIN_CHARS = 100
CONTENT_MAX_CHARS = 10000
QUESTION_MIN_CHARS = 10


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ------------------------------------------------------------------ #
#  Input
# ------------------------------------------------------------------ #


class WritingMetadata(CamelModel):
    """Typing telemetry captured by the editor while the answer was written."""

    time_spent: float = Field(ge=0)  # minutes
    word_count: int = Field(ge=0)
    keystrokes: int = Field(ge=0)
    pauses: list[float] = Field(default_factory=list)  # milliseconds
    source: Literal["text", "upload", "ocr"] = "text"


class EvaluationInput(CamelModel):
    content: str = Field(min_length=CONTENT_MIN_CHARS, max_length=CONTENT_MAX_CHARS)
    question_text: str = Field(min_length=QUESTION_MIN_CHARS)
    exam_type: str = "UPSC Mains"
    subject: str = "General Studies"
    time_spent: float | None = Field(default=None, ge=0)
    metadata: WritingMetadata | None = None

    @field_validator("question_text")
    @classmethod
    def _question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question text is required")
        return value

    @property
    def word_count(self) -> int:
        if self.metadata is not None and self.metadata.word_count > 0:
            return self.metadata.word_count
        return len(self.content.split())

    @property
    def minutes_spent(self) -> float | None:
        if self.metadata is not None and self.metadata.time_spent > 0:
            return self.metadata.time_spent
        return self.time_spent


# ------------------------------------------------------------------ #
#  Result
# ------------------------------------------------------------------ #


class CategoryScores(CamelModel):
    content: int = Field(ge=0, le=100)
    structure: int = Field(ge=0, le=100)
    language: int = Field(ge=0, le=100)
    presentation: int = Field(ge=0, le=100)
    time_management: int = Field(ge=0, le=100)


class Feedback(CamelModel):
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    missing_keywords: list[str] = Field(default_factory=list)


class Analytics(CamelModel):
    readability_score: float = 0.0
    vocabulary_level: str = ""
    sentence_complexity: str = ""
    paragraph_structure: str = ""


class PeerComparison(CamelModel):
    peer_percentile: float
    average_score: float
    top_performer_gap: float


class PauseAnalysis(CamelModel):
    total_pauses: int = 0
    long_pauses: int = 0
    average_pause_time: float = 0.0


class WritingEfficiency(CamelModel):
    wpm: int = 0
    efficiency: str = "unknown"
    typing_pattern: str = "unknown"
    pause_analysis: PauseAnalysis = Field(default_factory=PauseAnalysis)


class EvaluationResult(CamelModel):
    id: str
    overall_score: int = Field(ge=0, le=100)
    scores: CategoryScores
    feedback: Feedback
    analytics: Analytics
    comparison: PeerComparison
    writing_efficiency: WritingEfficiency = Field(default_factory=WritingEfficiency)
    fallback_agents: list[str] = Field(default_factory=list)
    processing_time: float = Field(ge=0)  # milliseconds
    created_at: datetime


# ------------------------------------------------------------------ #
#  Realtime suggestions
# ------------------------------------------------------------------ #


class RealtimeSuggestionRequest(CamelModel):
    content: str = Field(min_length=20, max_length=5000)
    context: str = Field(min_length=10)
    question_text: str | None = None
    exam_type: str = "UPSC Mains"


class RealtimeSuggestionResponse(CamelModel):
    suggestions: list[str] = Field(default_factory=list)
    timestamp: datetime
    content_length: int = 0
