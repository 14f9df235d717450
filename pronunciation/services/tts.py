"""Amazon Polly text-to-speech adapter producing local MP3 files."""

from __future__ import annotations

import logging
from html import escape as html_escape
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from pronunciation.application.interfaces import SpeechSynthesizerInterface
from pronunciation.config.settings import settings
from pronunciation.services.aws import create_boto3_client
from pronunciation.services.media import remove_quietly, temp_audio_path
from pronunciation.services.resilience import ExternalServiceError

logger = logging.getLogger(__name__)


class SpeechSynthesisError(ExternalServiceError):
    """Raised when Polly fails to synthesize speech."""


class PollyTtsService(SpeechSynthesizerInterface):
    """Generate reference pronunciations with Amazon Polly."""

    def __init__(
        self,
        *,
        default_voice_id: str | None = None,
        engine: str | None = None,
        max_text_length: int | None = None,
        client: Any = None,
    ) -> None:
        self._default_voice_id = default_voice_id or settings.polly.default_voice_id
        self._engine = engine or settings.polly.engine
        self._max_text_length = max_text_length or settings.polly.max_text_length
        self._client = client or create_boto3_client("polly", region_name=settings.polly.region)

    @property
    def default_voice(self) -> str:
        return self._default_voice_id

    async def synthesize(
        self,
        text: str,
        *,
        voice: Optional[str] = None,
        speed: float = 1.0,
    ) -> str:
        """Convert text to speech and return the path of the written MP3."""

        text = (text or "").strip()
        if not text:
            raise SpeechSynthesisError("Text is required for TTS", retryable=False)
        if len(text) > self._max_text_length:
            logger.warning(
                "Text too long (%d chars), truncating to %d", len(text), self._max_text_length
            )
            text = text[: self._max_text_length]

        voice_id = voice or self._default_voice_id
        ssml = self._build_ssml(text, rate=speed)
        try:
            response: dict[str, Any] = await run_in_threadpool(
                self._client.synthesize_speech,
                TextType="ssml",
                Text=ssml,
                VoiceId=voice_id,
                Engine=self._engine,
                OutputFormat="mp3",
            )
        except ClientError as exc:
            logger.exception("Polly synth failed for voice '%s'", voice_id)
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 500
            raise SpeechSynthesisError(
                f"Failed to synthesize speech: {exc}", retryable=status >= 500 or status == 429
            ) from exc
        except BotoCoreError as exc:
            logger.exception("Polly synth failed for voice '%s'", voice_id)
            raise SpeechSynthesisError(f"Failed to synthesize speech: {exc}") from exc

        audio_stream = response.get("AudioStream")
        if audio_stream is None:
            raise SpeechSynthesisError("Polly returned no audio stream.")
        audio_bytes = audio_stream.read()
        if not audio_bytes:
            raise SpeechSynthesisError("Polly returned an empty audio stream.")

        output_path = temp_audio_path("tts", ".mp3")
        try:
            with open(output_path, "wb") as output_fp:
                output_fp.write(audio_bytes)
        except OSError as exc:
            remove_quietly(output_path)
            raise SpeechSynthesisError(f"Failed to write TTS output: {exc}", retryable=False) from exc

        logger.info("TTS saved %d bytes to %s", len(audio_bytes), output_path)
        return output_path

    def _build_ssml(self, text: str, *, rate: float) -> str:
        rate_pct = max(20, min(200, int(round(rate * 100))))
        if rate_pct != 100:
            return f'<speak><prosody rate="{rate_pct}%">{html_escape(text)}</prosody></speak>'
        return f"<speak>{html_escape(text)}</speak>"


__all__ = ["PollyTtsService", "SpeechSynthesisError"]
