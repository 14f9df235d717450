"""SQLAlchemy model for cached prompt audio."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy import Enum as SqlEnum

from pronunciation.domain.models import AudioCacheStatus
from pronunciation.models.base import Base, utcnow


AUDIO_CACHE_STATUS = SqlEnum(AudioCacheStatus, name="audio_cache_status")


class PromptAudio(Base):
    __tablename__ = "prompt_audio"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    prompt_index = Column(Integer, unique=True, nullable=False, index=True)
    prompt_text = Column(Text, nullable=False)
    status = Column(
        AUDIO_CACHE_STATUS,
        nullable=False,
        default=AudioCacheStatus.PENDING,
    )
    audio_url = Column(String(2048), nullable=True)
    audio_public_id = Column(String(512), nullable=True)
    duration = Column(Float, nullable=False, default=0.0)
    voice = Column(String(32), nullable=False)
    format = Column(String(16), nullable=False, default="mp3")
    claim_id = Column(Uuid(as_uuid=True), nullable=False, default=uuid.uuid4)
    claimed_at = Column(DateTime, nullable=False, default=utcnow)
    generated_at = Column(DateTime, nullable=True)


__all__ = ["PromptAudio", "AUDIO_CACHE_STATUS"]
