"""Cache-first pronunciation audio for single words."""

from __future__ import annotations

import hashlib
import re
from typing import List, Optional
from uuid import UUID

from pronunciation.application.interfaces import (
    ObjectStorageInterface,
    SpeechSynthesizerInterface,
    WordAudioRepositoryInterface,
)
from pronunciation.config.settings import settings
from pronunciation.domain.models import AudioLookup, StoredAudio, WordAudioRecord
from pronunciation.domain.services import PracticeDomainService
from pronunciation.services.audio_cache import ClaimingAudioCache

_UNSAFE_KEY_CHARS = re.compile(r"[^a-z0-9-]+")


class WordAudioService(ClaimingAudioCache):
    """Serve word pronunciations, counting how often each cached word is requested."""

    kind = "word"
    folder = "words-audio"

    def __init__(
        self,
        repository: WordAudioRepositoryInterface,
        storage: ObjectStorageInterface,
        synthesizer: SpeechSynthesizerInterface,
        **cache_options,
    ) -> None:
        super().__init__(storage, synthesizer, **cache_options)
        self._repository = repository
        self._speed = settings.audio_cache.word_speed

    async def get_or_generate(self, word: str) -> AudioLookup:
        """Return audio for ``word``; cache hits bump ``times_used``."""

        normalized = PracticeDomainService.normalize_word(word)
        record, cached = await self._resolve(normalized, normalized, speed=self._speed)
        times_used = record.times_used
        if cached:
            times_used = await self._repository.increment_usage(normalized)
        return AudioLookup(
            audio_url=record.audio_url,
            duration=record.duration,
            cached=cached,
            times_used=times_used,
        )

    async def popular_words(self, limit: int = 50) -> List[WordAudioRecord]:
        return await self._repository.most_used(limit)

    async def count(self) -> int:
        return await self._repository.count_ready()

    async def _get(self, key: str) -> Optional[WordAudioRecord]:
        return await self._repository.get(key)

    async def _claim(self, key: str, text: str, voice: str) -> Optional[UUID]:
        return await self._repository.claim(key, voice)

    async def _release(self, key: str, claim_id: UUID) -> None:
        await self._repository.release(key, claim_id)

    async def _mark_ready(self, key: str, claim_id: UUID, audio: StoredAudio) -> WordAudioRecord:
        return await self._repository.mark_ready(key, claim_id, audio)

    def _public_id(self, key: str) -> str:
        slug = _UNSAFE_KEY_CHARS.sub("-", key).strip("-")
        if slug != key:
            # Keep distinct words from sharing a storage key after slugging.
            slug = f"{slug}-{hashlib.sha1(key.encode('utf-8')).hexdigest()[:8]}"
        return f"word-{slug}"


__all__ = ["WordAudioService"]
