"""Amazon Transcribe integration using the streaming API."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any

from amazon_transcribe.client import TranscribeStreamingClient
from amazon_transcribe.exceptions import BadRequestException
from amazon_transcribe.handlers import TranscriptResultStreamHandler
from amazon_transcribe.model import TranscriptEvent

from pronunciation.application.interfaces import TranscriberInterface
from pronunciation.config.settings import settings
from pronunciation.services.media import MediaConversionError, convert_to_pcm
from pronunciation.services.resilience import ExternalServiceError

logger = logging.getLogger(__name__)

_LANGUAGE_HINTS = {
    "en": "en-US",
    "en-us": "en-US",
    "en-gb": "en-GB",
}


class TranscriptionError(ExternalServiceError):
    """Raised when Amazon Transcribe fails to process audio successfully."""


class TranscribeService(TranscriberInterface):
    """Stream recordings to Amazon Transcribe and collect the final transcript."""

    def __init__(
        self,
        region: str | None = None,
        language_code: str | None = None,
        media_sample_rate_hz: int | None = None,
        chunk_size: int = 8192,
        client: Any = None,
    ) -> None:
        self._region = region or settings.transcribe.region
        self._language_code = language_code or settings.transcribe.language_code
        self._media_sample_rate_hz = media_sample_rate_hz or settings.transcribe.media_sample_rate_hz
        self._chunk_size = chunk_size

        # The streaming SDK only reads credentials from the default chain.
        if settings.s3.access_key:
            os.environ.setdefault("AWS_ACCESS_KEY_ID", settings.s3.access_key)
        if settings.s3.secret_key:
            os.environ.setdefault("AWS_SECRET_ACCESS_KEY", settings.s3.secret_key)

        self._client = client or TranscribeStreamingClient(region=self._region)

    def _resolve_language(self, language_hint: str) -> str:
        return _LANGUAGE_HINTS.get((language_hint or "").lower(), self._language_code)

    async def transcribe(self, audio_path: str, language_hint: str = "en") -> str:
        """Return the transcript of ``audio_path`` (may be empty for silence)."""

        try:
            pcm_data = await convert_to_pcm(audio_path, self._media_sample_rate_hz)
        except MediaConversionError as exc:
            raise TranscriptionError(f"Audio conversion failed: {exc}", retryable=False) from exc

        language_code = self._resolve_language(language_hint)
        try:
            stream = await self._client.start_stream_transcription(
                language_code=language_code,
                media_sample_rate_hz=self._media_sample_rate_hz,
                media_encoding="pcm",
            )
        except BadRequestException as exc:
            raise TranscriptionError(
                f"Transcribe rejected the request: {exc.message}", retryable=False
            ) from exc
        except Exception as exc:
            logger.error("Could not start transcription stream: %r", exc)
            raise TranscriptionError(f"Could not start transcription stream: {exc!r}") from exc

        handler = _FinalTranscriptHandler(stream.output_stream)

        async def write_chunks() -> None:
            # Pace the upload at roughly real time; Transcribe rejects bursts.
            bytes_per_sec = self._media_sample_rate_hz * 2
            sleep_time = self._chunk_size / bytes_per_sec
            logger.info(
                "Starting stream. Total bytes: %d. Chunk size: %d. Sleep: %.4fs",
                len(pcm_data),
                self._chunk_size,
                sleep_time,
            )
            for offset in range(0, len(pcm_data), self._chunk_size):
                chunk = pcm_data[offset : offset + self._chunk_size]
                await stream.input_stream.send_audio_event(audio_chunk=chunk)
                await asyncio.sleep(sleep_time)
            await stream.input_stream.end_stream()

        try:
            await asyncio.gather(write_chunks(), handler.handle_events())
        except TranscriptionError:
            raise
        except Exception as exc:
            logger.error("Streaming loop failed: %s", exc)
            raise TranscriptionError(f"Streaming transcription failed: {exc}") from exc

        transcript = " ".join(handler.segments).strip()
        logger.info("Transcription complete. Length: %d", len(transcript))
        return transcript


class _FinalTranscriptHandler(TranscriptResultStreamHandler):
    def __init__(self, transcript_result_stream):
        super().__init__(transcript_result_stream)
        self.segments: list[str] = []

    async def handle_transcript_event(self, transcript_event: TranscriptEvent):
        for result in transcript_event.transcript.results:
            if result.is_partial or not result.alternatives:
                continue
            text = result.alternatives[0].transcript.strip()
            if text:
                self.segments.append(text)


__all__ = ["TranscribeService", "TranscriptionError"]
