"""SQLAlchemy model for scored practice sessions."""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, String, Text, Uuid

from pronunciation.models.base import Base, utcnow


class PracticeSession(Base):
    """One scoring attempt; rows are never updated after insert."""

    __tablename__ = "practice_sessions"
    __table_args__ = (
        Index("ix_practice_sessions_user_prompt", "user_id", "prompt_index"),
        Index("ix_practice_sessions_user_completed", "user_id", "completed_at"),
    )

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    user_id = Column(String(128), nullable=False, index=True)
    prompt_index = Column(Integer, nullable=False)
    user_audio_url = Column(String(2048), nullable=False)
    user_audio_public_id = Column(String(512), nullable=False)
    transcript = Column(Text, nullable=False)
    overall_score = Column(Float, nullable=False)
    fluency_score = Column(Float, nullable=True)
    pronunciation_score = Column(Float, nullable=True)
    # Embedded WordScore/PhoneScore value objects.
    word_scores = Column(JSON, nullable=False, default=list)
    recording_duration = Column(Float, nullable=False, default=0.0)
    completed_at = Column(DateTime, nullable=False, default=utcnow, index=True)


__all__ = ["PracticeSession"]
