"""SQLAlchemy model for cached single-word audio."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Float, Integer, String, Uuid

from pronunciation.models.base import Base, utcnow
from pronunciation.domain.models import AudioCacheStatus
from pronunciation.models.prompt_audio import AUDIO_CACHE_STATUS


class WordAudio(Base):
    __tablename__ = "word_audio"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    word = Column(String(128), unique=True, nullable=False, index=True)
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
    times_used = Column(Integer, nullable=False, default=1, index=True)
    claim_id = Column(Uuid(as_uuid=True), nullable=False, default=uuid.uuid4)
    claimed_at = Column(DateTime, nullable=False, default=utcnow)
    generated_at = Column(DateTime, nullable=True)


__all__ = ["WordAudio"]
