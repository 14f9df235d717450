"""Speechace pronunciation scoring client."""

from __future__ import annotations

import logging
import os
from typing import Any, Iterable, Optional

import httpx

from pronunciation.application.interfaces import PronunciationScorerInterface
from pronunciation.config.settings import settings
from pronunciation.domain.models import PhoneScore, ProviderScore, WordScore
from pronunciation.services.resilience import ExternalServiceError

logger = logging.getLogger(__name__)

SCORING_PATH = "/api/scoring/text/v0.5/json"


class ScoringProviderError(ExternalServiceError):
    """Raised when Speechace rejects or cannot score a recording."""


def _clamp_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(100.0, score))


def _optional_score(value: Any) -> Optional[float]:
    if value is None:
        return None
    return _clamp_score(value)


def _extent_seconds(items: Iterable[dict[str, Any]]) -> Optional[tuple[float, float]]:
    # Malformed extents (fewer than start and end) are skipped.
    extents = [
        extent
        for extent in (item.get("extent") for item in items)
        if isinstance(extent, (list, tuple)) and len(extent) >= 2
    ]
    if not extents:
        return None
    return extents[0][0] / 1000, extents[-1][1] / 1000


def parse_word_scores(word_score_list: Iterable[dict[str, Any]]) -> list[WordScore]:
    """Map Speechace ``word_score_list`` entries to ``WordScore`` objects.

    Word timing comes from the first and last syllable extents (milliseconds).
    When a word has no syllables the phone extents are used instead, and when
    those are missing too the word is placed at 0-0.
    """

    parsed: list[WordScore] = []
    for entry in word_score_list or []:
        word = entry.get("word", "")
        phones = entry.get("phone_score_list") or []

        timing = _extent_seconds(entry.get("syllable_score_list") or [])
        if timing is None:
            timing = _extent_seconds(phones)
        if timing is None:
            logger.warning("No timing information for word '%s'; using 0-0", word)
            timing = (0.0, 0.0)
        start_time = max(0.0, timing[0])
        end_time = max(start_time, timing[1])

        phone_scores = [
            PhoneScore(
                phone=phone.get("phone", ""),
                sound_most_like=phone.get("sound_most_like") or phone.get("phone", ""),
                score=_clamp_score(phone.get("quality_score")),
                stress_level=phone.get("stress_level") or None,
            )
            for phone in phones
        ]

        parsed.append(
            WordScore(
                word=word,
                score=_clamp_score(entry.get("quality_score")),
                start_time=start_time,
                end_time=end_time,
                phone_scores=phone_scores,
            )
        )
    return parsed


class SpeechaceClient(PronunciationScorerInterface):
    """Score a recording against reference text with the Speechace v0.5 API."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_endpoint: str | None = None,
        dialect: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if api_key is None and settings.speechace.api_key is not None:
            api_key = settings.speechace.api_key.get_secret_value()
        self._api_key = api_key
        self._api_endpoint = (api_endpoint or settings.speechace.api_endpoint).rstrip("/")
        self._dialect = dialect or settings.speechace.dialect
        self._timeout = timeout_seconds or settings.retry.timeout_seconds
        self._transport = transport

        if not self._api_key:
            logger.warning("SPEECHACE_API_KEY not configured")

    async def score(self, audio_path: str, reference_text: str, user_id: str) -> ProviderScore:
        if not self._api_key:
            raise ScoringProviderError("Speechace API key not configured", retryable=False)
        if not os.path.exists(audio_path):
            raise ScoringProviderError(f"Audio file not found: {audio_path}", retryable=False)

        with open(audio_path, "rb") as audio_fp:
            audio_bytes = audio_fp.read()
        file_name = os.path.basename(audio_path) or "audio.mp3"
        content_type = "audio/wav" if file_name.lower().endswith(".wav") else "audio/mpeg"

        logger.info(
            "Calling Speechace for user=%s text=%r bytes=%d", user_id, reference_text, len(audio_bytes)
        )
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            try:
                response = await client.post(
                    f"{self._api_endpoint}{SCORING_PATH}",
                    params={"key": self._api_key},
                    data={"text": reference_text, "dialect": self._dialect, "user_id": user_id},
                    files={"user_audio_file": (file_name, audio_bytes, content_type)},
                )
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                raise ScoringProviderError(
                    f"Speechace API error: {self._error_detail(exc.response)}",
                    retryable=status_code >= 500 or status_code == 429,
                ) from exc
            except httpx.RequestError as exc:
                raise ScoringProviderError(f"Unable to connect to Speechace: {exc}") from exc
            except ValueError as exc:
                raise ScoringProviderError(f"Invalid response from Speechace: {exc}") from exc

        if payload.get("status") != "success":
            message = payload.get("status_message") or payload.get("status") or "Unknown error"
            logger.error("Speechace API returned error status: %s", message)
            raise ScoringProviderError(f"Speechace API error: {message}", retryable=False)

        text_score = payload.get("text_score") or {}
        word_scores = parse_word_scores(text_score.get("word_score_list") or [])
        result = ProviderScore(
            quality_score=_clamp_score(text_score.get("quality_score")),
            fluency_score=_optional_score(text_score.get("fluency_score")),
            pronunciation_score=_optional_score(text_score.get("pronunciation_score")),
            word_scores=word_scores,
        )
        logger.info(
            "Speechace scoring successful: overall=%.1f words=%d",
            result.quality_score,
            len(word_scores),
        )
        return result

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase or str(response.status_code)
        if isinstance(body, dict):
            for key in ("status_message", "message", "error"):
                if body.get(key):
                    return str(body[key])
        return response.reason_phrase or str(response.status_code)


__all__ = ["SCORING_PATH", "ScoringProviderError", "SpeechaceClient", "parse_word_scores"]
