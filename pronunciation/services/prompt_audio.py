"""Cache-first reference audio for the practice prompts."""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from pronunciation.application.interfaces import (
    ObjectStorageInterface,
    PromptAudioRepositoryInterface,
    SpeechSynthesizerInterface,
)
from pronunciation.config.settings import settings
from pronunciation.domain.models import AudioLookup, PromptAudioRecord, StoredAudio
from pronunciation.domain.services import PracticeDomainService
from pronunciation.services.audio_cache import ClaimingAudioCache
from pronunciation.services.prompts import prompt_text_for

logger = logging.getLogger("pronunciation.services.pipeline")


class PromptAudioService(ClaimingAudioCache):
    """Generate each prompt's audio once and serve the stored copy afterwards."""

    kind = "prompt"
    folder = "prompts-audio"

    def __init__(
        self,
        repository: PromptAudioRepositoryInterface,
        storage: ObjectStorageInterface,
        synthesizer: SpeechSynthesizerInterface,
        **cache_options,
    ) -> None:
        super().__init__(storage, synthesizer, **cache_options)
        self._repository = repository
        self._speed = settings.audio_cache.prompt_speed

    async def get_or_generate(
        self, prompt_index: int, prompt_text: Optional[str] = None
    ) -> AudioLookup:
        """Return the prompt's audio, generating it on the first request.

        ``prompt_text`` defaults to the catalog sentence. A cached entry is
        returned as-is even when a different text is supplied.
        """

        PracticeDomainService.ensure_prompt_index(prompt_index)
        text = (prompt_text or "").strip() or prompt_text_for(prompt_index)

        record, cached = await self._resolve(prompt_index, text, speed=self._speed)
        return AudioLookup(audio_url=record.audio_url, duration=record.duration, cached=cached)

    async def list_cached(self) -> List[PromptAudioRecord]:
        return await self._repository.list_ready()

    async def regenerate(
        self, prompt_index: int, prompt_text: Optional[str] = None
    ) -> AudioLookup:
        """Drop the cached entry and its stored blob, then generate again."""

        PracticeDomainService.ensure_prompt_index(prompt_index)
        logger.info("Regenerating audio for prompt %d", prompt_index)
        removed = await self._repository.delete(prompt_index)
        if removed is not None and removed.audio_public_id:
            await self._storage.delete(removed.audio_public_id)
        return await self.get_or_generate(prompt_index, prompt_text)

    async def _get(self, key: int) -> Optional[PromptAudioRecord]:
        return await self._repository.get(key)

    async def _claim(self, key: int, text: str, voice: str) -> Optional[UUID]:
        return await self._repository.claim(key, text, voice)

    async def _release(self, key: int, claim_id: UUID) -> None:
        await self._repository.release(key, claim_id)

    async def _mark_ready(
        self, key: int, claim_id: UUID, audio: StoredAudio
    ) -> PromptAudioRecord:
        return await self._repository.mark_ready(key, claim_id, audio)

    def _public_id(self, key: int) -> str:
        return f"prompt-{key}"


__all__ = ["PromptAudioService"]
