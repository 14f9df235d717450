from enum import Enum
from typing import Optional, List
from uuid import UUID
from pydantic import BaseModel, Field
from datetime import datetime

PROMPT_INDEX_MIN = 0
PROMPT_INDEX_MAX = 15
MAX_WORD_LENGTH = 128


class AudioCacheStatus(str, Enum):
    """Lifecycle of a cache row: claimed by a generator, then ready"""
    PENDING = "pending"
    READY = "ready"


class StoredAudio(BaseModel):
    """Durable copy of an audio file in object storage"""
    url: str
    secure_url: str
    public_id: str
    format: str = "mp3"
    duration: float = 0.0
    bytes: int = 0


class PhoneScore(BaseModel):
    """Per-phone quality score embedded in a word score"""
    phone: str
    sound_most_like: str
    score: float = Field(..., ge=0, le=100)
    stress_level: Optional[int] = None


class WordScore(BaseModel):
    """Per-word quality score with timing in seconds"""
    word: str
    score: float = Field(..., ge=0, le=100)
    start_time: float = Field(..., ge=0)
    end_time: float = Field(..., ge=0)
    phone_scores: List[PhoneScore] = Field(default_factory=list)


class ProviderScore(BaseModel):
    """Normalized output of the external pronunciation scorer"""
    quality_score: float = Field(..., ge=0, le=100)
    fluency_score: Optional[float] = None
    pronunciation_score: Optional[float] = None
    word_scores: List[WordScore] = Field(default_factory=list)


class AudioLookup(BaseModel):
    """Result of a cache-or-generate audio lookup"""
    audio_url: str
    duration: float
    cached: bool
    times_used: Optional[int] = None


class PromptAudioRecord(BaseModel):
    """Domain model for a cached prompt audio entry"""
    prompt_index: int
    prompt_text: str
    status: AudioCacheStatus
    audio_url: Optional[str] = None
    audio_public_id: Optional[str] = None
    duration: float = 0.0
    voice: str
    format: str = "mp3"
    claim_id: UUID
    claimed_at: datetime
    generated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WordAudioRecord(BaseModel):
    """Domain model for a cached word audio entry"""
    word: str
    status: AudioCacheStatus
    audio_url: Optional[str] = None
    audio_public_id: Optional[str] = None
    duration: float = 0.0
    voice: str
    format: str = "mp3"
    times_used: int = 1
    claim_id: UUID
    claimed_at: datetime
    generated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NewPracticeSession(BaseModel):
    """Payload for persisting one scoring attempt"""
    user_id: str
    prompt_index: int = Field(..., ge=PROMPT_INDEX_MIN, le=PROMPT_INDEX_MAX)
    user_audio_url: str
    user_audio_public_id: str
    transcript: str
    overall_score: float = Field(..., ge=0, le=100)
    fluency_score: Optional[float] = None
    pronunciation_score: Optional[float] = None
    word_scores: List[WordScore] = Field(default_factory=list)
    recording_duration: float = 0.0


class PracticeSessionRecord(NewPracticeSession):
    """Domain model for a persisted practice session"""
    id: UUID
    completed_at: datetime

    class Config:
        from_attributes = True


class ScoringResult(BaseModel):
    """Outcome of scoring one user recording"""
    session_id: UUID
    transcript: str
    overall_score: float
    fluency_score: Optional[float] = None
    pronunciation_score: Optional[float] = None
    word_scores: List[WordScore] = Field(default_factory=list)
    user_audio_url: str
    recording_duration: float
    completed_at: Optional[datetime] = None

    @classmethod
    def from_session(cls, session: PracticeSessionRecord) -> "ScoringResult":
        return cls(
            session_id=session.id,
            transcript=session.transcript,
            overall_score=session.overall_score,
            fluency_score=session.fluency_score,
            pronunciation_score=session.pronunciation_score,
            word_scores=session.word_scores,
            user_audio_url=session.user_audio_url,
            recording_duration=session.recording_duration,
            completed_at=session.completed_at,
        )


class HistoryItem(BaseModel):
    """Compact practice history row"""
    session_id: UUID
    prompt_index: int
    overall_score: float
    completed_at: datetime
    transcript: str


class UserStats(BaseModel):
    """Aggregate practice statistics for one user"""
    total_sessions: int = 0
    average_score: float = 0.0
    highest_score: float = 0.0
    lowest_score: float = 0.0
    completed_prompts: List[int] = Field(default_factory=list)
