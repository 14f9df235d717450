"""Pydantic schemas for pronunciation practice endpoints."""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serialize with camelCase keys; accept either spelling on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by every pronunciation endpoint."""

    success: bool = True
    data: T


class PhoneScoreView(CamelModel):
    phone: str
    sound_most_like: str
    score: float
    stress_level: Optional[int] = None


class WordScoreView(CamelModel):
    word: str
    score: float
    start_time: float = Field(..., description="Seconds from the start of the recording")
    end_time: float = Field(..., description="Seconds from the start of the recording")
    phone_scores: List[PhoneScoreView] = Field(default_factory=list)


class ScoringResultView(CamelModel):
    """Scores and transcript for one recording."""

    session_id: UUID
    transcript: str
    overall_score: float
    fluency_score: Optional[float] = None
    pronunciation_score: Optional[float] = None
    word_scores: List[WordScoreView] = Field(default_factory=list)
    user_audio_url: str
    recording_duration: float
    completed_at: Optional[datetime] = None


class AudioLookupView(CamelModel):
    audio_url: str
    duration: float
    cached: bool
    times_used: Optional[int] = None


class HistoryItemView(CamelModel):
    session_id: UUID
    prompt_index: int
    overall_score: float
    completed_at: datetime
    transcript: str


class UserStatsView(CamelModel):
    total_sessions: int
    average_score: float
    highest_score: float
    lowest_score: float
    completed_prompts: List[int]


class PromptView(CamelModel):
    prompt_index: int
    prompt_text: str


class CachedPromptView(CamelModel):
    prompt_index: int
    audio_url: str
    duration: float


class PopularWordView(CamelModel):
    word: str
    times_used: int
    audio_url: str


class PopularWordsView(CamelModel):
    words: List[PopularWordView]
    total_cached: int = Field(..., description="Number of words with ready audio")


__all__ = [
    "ApiResponse",
    "AudioLookupView",
    "CachedPromptView",
    "HistoryItemView",
    "PhoneScoreView",
    "PopularWordView",
    "PopularWordsView",
    "PromptView",
    "ScoringResultView",
    "UserStatsView",
    "WordScoreView",
]
