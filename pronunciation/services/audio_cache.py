"""Claim-based read-through cache shared by prompt and word audio."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

from pronunciation.application.interfaces import (
    ObjectStorageInterface,
    SpeechSynthesizerInterface,
)
from pronunciation.config.settings import settings
from pronunciation.domain.models import AudioCacheStatus, StoredAudio
from pronunciation.domain.services import ClaimLostError
from pronunciation.models.base import utcnow
from pronunciation.services.media import remove_quietly
from pronunciation.services.resilience import RetryPolicy, call_with_retry
from pronunciation.services.storage import StorageError
from pronunciation.services.tts import SpeechSynthesisError
from pronunciation.telemetry import record_cache_lookup

logger = logging.getLogger("pronunciation.services.pipeline")

# Generation is a retried TTS call followed by a retried upload.
_RETRIED_GENERATION_CALLS = 2


class AudioCacheTimeoutError(RuntimeError):
    """Raised when another request holds a cache key for longer than the wait budget."""


class ClaimingAudioCache:
    """Resolve a cache key to ready audio, generating it at most once.

    A miss inserts a ``pending`` row under the unique key and gets back a claim
    token. The caller holding the token synthesizes, uploads and marks the row
    ``ready``; every other caller polls until the row is ready, disappears
    (then it tries to claim again) or the wait budget runs out.

    Pending rows older than the stale threshold are dropped so a crashed
    generator cannot block the key. The threshold is never shorter than the
    longest a healthy generator can spend retrying, and both ``mark_ready`` and
    ``release`` only act on the caller's own token, so a slow generator whose
    claim was taken over cannot publish or delete over the new holder.
    """

    kind = "audio"
    folder = "audio"

    def __init__(
        self,
        storage: ObjectStorageInterface,
        synthesizer: SpeechSynthesizerInterface,
        *,
        retry_policy: RetryPolicy | None = None,
        poll_interval_seconds: float | None = None,
        wait_timeout_seconds: float | None = None,
        claim_stale_after_seconds: float | None = None,
    ) -> None:
        cache_cfg = settings.audio_cache
        self._storage = storage
        self._synthesizer = synthesizer
        self._retry_policy = retry_policy or RetryPolicy.from_settings()
        self._poll_interval = poll_interval_seconds or cache_cfg.poll_interval_seconds
        self._wait_timeout = wait_timeout_seconds or cache_cfg.wait_timeout_seconds
        self._stale_after = timedelta(
            seconds=self._stale_threshold(
                claim_stale_after_seconds or cache_cfg.claim_stale_after_seconds
            )
        )

    def _stale_threshold(self, configured: float) -> float:
        generation_budget = self._retry_policy.worst_case_seconds()
        if generation_budget is None:
            return configured
        floor = _RETRIED_GENERATION_CALLS * generation_budget
        if configured < floor:
            logger.warning(
                "Claim stale threshold %.1fs is shorter than the generation retry budget; using %.1fs",
                configured,
                floor,
            )
            return floor
        return configured

    @property
    def stale_after(self) -> timedelta:
        return self._stale_after

    # Repository hooks implemented per cache kind.
    async def _get(self, key: Any) -> Optional[Any]:
        raise NotImplementedError

    async def _claim(self, key: Any, text: str, voice: str) -> Optional[UUID]:
        raise NotImplementedError

    async def _release(self, key: Any, claim_id: UUID) -> None:
        raise NotImplementedError

    async def _mark_ready(self, key: Any, claim_id: UUID, audio: StoredAudio) -> Any:
        raise NotImplementedError

    def _public_id(self, key: Any) -> str:
        raise NotImplementedError

    async def _resolve(self, key: Any, text: str, *, speed: float) -> tuple[Any, bool]:
        """Return ``(ready_record, cached)`` for ``key``."""

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._wait_timeout
        voice = self._synthesizer.default_voice

        while True:
            record = await self._get(key)
            if record is not None and record.status == AudioCacheStatus.READY:
                record_cache_lookup(self.kind, "hit")
                return record, True

            if record is None:
                claim_id = await self._claim(key, text, voice)
                if claim_id is None:
                    # Lost the insert race; re-read the winner's row.
                    continue
                record_cache_lookup(self.kind, "miss")
                logger.info("Generating %s audio for %r", self.kind, key)
                try:
                    record = await self._generate(
                        key, claim_id, text, voice=voice, speed=speed
                    )
                except ClaimLostError:
                    logger.warning(
                        "%s audio claim for %r was taken over; waiting for the new holder",
                        self.kind.capitalize(),
                        key,
                    )
                    continue
                return record, False

            if utcnow() - record.claimed_at > self._stale_after:
                logger.warning(
                    "Dropping stale %s audio claim for %r (claimed at %s)",
                    self.kind,
                    key,
                    record.claimed_at,
                )
                await self._release(key, record.claim_id)
                continue

            if loop.time() >= deadline:
                record_cache_lookup(self.kind, "timeout")
                raise AudioCacheTimeoutError(
                    f"Timed out waiting for {self.kind} audio {key!r} to be generated"
                )
            await asyncio.sleep(self._poll_interval)

    async def _generate(
        self, key: Any, claim_id: UUID, text: str, *, voice: str, speed: float
    ) -> Any:
        local_path: str | None = None
        stored: StoredAudio | None = None
        # Each claim uploads under its own key, so a failed claim never removes a published blob.
        public_id = f"{self._public_id(key)}-{claim_id.hex[:8]}"
        try:
            local_path = await call_with_retry(
                lambda: self._synthesizer.synthesize(text, voice=voice, speed=speed),
                policy=self._retry_policy,
                adapter="tts",
                error_type=SpeechSynthesisError,
            )
            stored = await call_with_retry(
                lambda: self._storage.upload(local_path, folder=self.folder, public_id=public_id),
                policy=self._retry_policy,
                adapter="storage",
                error_type=StorageError,
            )
            record = await self._mark_ready(key, claim_id, stored)
        except ClaimLostError:
            if stored is not None:
                await self._storage.delete(stored.public_id)
            raise
        except Exception:
            logger.exception("Failed to generate %s audio for %r", self.kind, key)
            if stored is not None:
                await self._storage.delete(stored.public_id)
            await self._release(key, claim_id)
            raise
        finally:
            remove_quietly(local_path)

        logger.info(
            "%s audio for %r cached at %s (%.2fs)",
            self.kind.capitalize(),
            key,
            stored.secure_url,
            stored.duration,
        )
        return record


__all__ = ["AudioCacheTimeoutError", "ClaimingAudioCache"]
