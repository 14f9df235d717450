"""Score a user's recording against a practice prompt and query past sessions."""

from __future__ import annotations

import logging
import time
from typing import List, Optional
from uuid import UUID

from pronunciation.application.interfaces import (
    ObjectStorageInterface,
    PracticeSessionRepositoryInterface,
    PronunciationScorerInterface,
    TranscriberInterface,
)
from pronunciation.domain.models import (
    HistoryItem,
    NewPracticeSession,
    ScoringResult,
    StoredAudio,
    UserStats,
)
from pronunciation.domain.services import PracticeDomainService
from pronunciation.services.media import remove_quietly, temp_audio_path
from pronunciation.services.prompts import prompt_text_for
from pronunciation.services.resilience import RetryPolicy, call_with_retry
from pronunciation.services.speechace import ScoringProviderError
from pronunciation.services.storage import StorageError
from pronunciation.services.transcribe import TranscriptionError
from pronunciation.telemetry import increment_transcript_fallback, record_scoring_attempt

logger = logging.getLogger("pronunciation.services.pipeline")

RECORDINGS_FOLDER = "user-recordings"


class PronunciationScoringService:
    """Coordinate storage, scoring, transcription and persistence for one attempt."""

    def __init__(
        self,
        sessions: PracticeSessionRepositoryInterface,
        storage: ObjectStorageInterface,
        scorer: PronunciationScorerInterface,
        transcriber: TranscriberInterface,
        *,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._sessions = sessions
        self._storage = storage
        self._scorer = scorer
        self._transcriber = transcriber
        self._retry_policy = retry_policy or RetryPolicy.from_settings()

    async def score_user_recording(
        self,
        user_id: str,
        prompt_index: int,
        prompt_text: Optional[str],
        audio_path: str,
    ) -> ScoringResult:
        """Upload, score, transcribe and persist one recording.

        The durable upload happens first; any later failure removes that
        upload again before the error propagates. Transcription failures do
        not fail the request: the reference text becomes the transcript.
        """

        PracticeDomainService.ensure_prompt_index(prompt_index)
        reference_text = (prompt_text or "").strip() or prompt_text_for(prompt_index)
        logger.info(
            "Scoring recording user=%s prompt=%d text=%r", user_id, prompt_index, reference_text
        )

        public_id = f"user-{user_id}-prompt-{prompt_index}-{int(time.time() * 1000)}"
        try:
            stored = await call_with_retry(
                lambda: self._storage.upload(
                    audio_path, folder=RECORDINGS_FOLDER, public_id=public_id, user_id=user_id
                ),
                policy=self._retry_policy,
                adapter="storage",
                error_type=StorageError,
            )
        except Exception:
            record_scoring_attempt("upload_failed")
            raise
        logger.info("User audio uploaded: %s", stored.secure_url)

        scoring_copy: str | None = None
        try:
            scoring_copy = temp_audio_path(f"scoring-{prompt_index}", ".mp3")
            await call_with_retry(
                lambda: self._storage.download(stored.public_id, scoring_copy),
                policy=self._retry_policy,
                adapter="storage",
                error_type=StorageError,
            )

            provider_score = await call_with_retry(
                lambda: self._scorer.score(scoring_copy, reference_text, user_id),
                policy=self._retry_policy,
                adapter="scoring",
                error_type=ScoringProviderError,
            )

            transcript = await self._transcribe_or_fallback(
                audio_path, reference_text, stored.duration
            )

            session = await self._sessions.create(
                NewPracticeSession(
                    user_id=user_id,
                    prompt_index=prompt_index,
                    user_audio_url=stored.secure_url,
                    user_audio_public_id=stored.public_id,
                    transcript=transcript,
                    overall_score=provider_score.quality_score,
                    fluency_score=provider_score.fluency_score,
                    pronunciation_score=provider_score.pronunciation_score,
                    word_scores=provider_score.word_scores,
                    recording_duration=stored.duration,
                )
            )
        except Exception:
            record_scoring_attempt("failed")
            await self._discard_upload(stored)
            raise
        finally:
            remove_quietly(scoring_copy)

        record_scoring_attempt("success")
        logger.info(
            "Pronunciation scoring completed session=%s overall=%.1f",
            session.id,
            session.overall_score,
        )
        return ScoringResult.from_session(session)

    async def _transcribe_or_fallback(
        self, audio_path: str, reference_text: str, recording_duration: float
    ) -> str:
        # Streaming runs at about real time, so longer recordings get a longer timeout.
        policy = self._retry_policy.extended_by(recording_duration)
        try:
            return await call_with_retry(
                lambda: self._transcriber.transcribe(audio_path, "en"),
                policy=policy,
                adapter="transcription",
                error_type=TranscriptionError,
            )
        except Exception as exc:
            logger.warning("Transcription failed, using reference text: %r", exc)
            increment_transcript_fallback()
            return reference_text

    async def _discard_upload(self, stored: StoredAudio) -> None:
        logger.warning("Removing orphaned recording %s", stored.public_id)
        await self._storage.delete(stored.public_id)

    async def get_history(self, user_id: str, limit: int = 10) -> List[HistoryItem]:
        sessions = await self._sessions.recent(user_id, limit)
        return [
            HistoryItem(
                session_id=s.id,
                prompt_index=s.prompt_index,
                overall_score=s.overall_score,
                completed_at=s.completed_at,
                transcript=s.transcript,
            )
            for s in sessions
        ]

    async def get_latest_session(
        self, user_id: str, prompt_index: int
    ) -> Optional[ScoringResult]:
        PracticeDomainService.ensure_prompt_index(prompt_index)
        session = await self._sessions.latest_for_prompt(user_id, prompt_index)
        if session is None:
            logger.info("No history found for user=%s prompt=%d", user_id, prompt_index)
            return None
        return ScoringResult.from_session(session)

    async def get_session_detail(
        self, session_id: UUID, user_id: Optional[str] = None
    ) -> Optional[ScoringResult]:
        """Return one session; when ``user_id`` is given, only if that user owns it."""

        session = await self._sessions.get(session_id)
        if session is None or (user_id is not None and session.user_id != user_id):
            return None
        return ScoringResult.from_session(session)

    async def get_user_stats(self, user_id: str) -> UserStats:
        sessions = await self._sessions.list_for_user(user_id)
        return PracticeDomainService.summarize(sessions)


__all__ = ["PronunciationScoringService", "RECORDINGS_FOLDER"]
