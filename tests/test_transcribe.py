"""Amazon Transcribe streaming adapter with a recorded streaming client."""

from __future__ import annotations

import asyncio

import pytest
from amazon_transcribe.exceptions import BadRequestException, LimitExceededException
from amazon_transcribe.model import Alternative, Result, Transcript, TranscriptEvent

from pronunciation.services import transcribe as transcribe_module
from pronunciation.services.media import MediaConversionError
from pronunciation.services.transcribe import TranscribeService, TranscriptionError

PCM = b"\x00\x01" * 10


def _event(text: str, *, partial: bool = False) -> TranscriptEvent:
    alternative = Alternative(transcript=text, items=[], entities=[])
    return TranscriptEvent(
        transcript=Transcript(results=[Result(is_partial=partial, alternatives=[alternative])])
    )


class RecordingInputStream:
    def __init__(self) -> None:
        self.chunks = []
        self.ended = False

    async def send_audio_event(self, audio_chunk):
        self.chunks.append(audio_chunk)

    async def end_stream(self):
        self.ended = True


class ReplayOutputStream:
    def __init__(self, events, error: Exception | None = None) -> None:
        self._events = events
        self._error = error

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self._events:
            yield event
        if self._error is not None:
            raise self._error


class RecordingStream:
    def __init__(self, events, error=None) -> None:
        self.input_stream = RecordingInputStream()
        self.output_stream = ReplayOutputStream(events, error)


class RecordingStreamingClient:
    def __init__(self, events=(), *, start_error=None, stream_error=None) -> None:
        self.requests = []
        self.events = list(events)
        self.start_error = start_error
        self.stream_error = stream_error
        self.stream = None

    async def start_stream_transcription(self, **kwargs):
        self.requests.append(kwargs)
        if self.start_error is not None:
            raise self.start_error
        self.stream = RecordingStream(self.events, self.stream_error)
        return self.stream


@pytest.fixture(autouse=True)
def fake_pcm(monkeypatch):
    async def convert(path, sample_rate):
        return PCM

    monkeypatch.setattr(transcribe_module, "convert_to_pcm", convert)


def _service(client) -> TranscribeService:
    return TranscribeService(
        region="us-east-1",
        language_code="en-US",
        media_sample_rate_hz=16000,
        chunk_size=8,
        client=client,
    )


def test_final_segments_are_joined_and_partials_skipped():
    client = RecordingStreamingClient(
        [_event("i like", partial=True), _event("I like to travel"), _event("around the world")]
    )

    transcript = asyncio.run(_service(client).transcribe("recording.webm"))

    assert transcript == "I like to travel around the world"
    assert b"".join(client.stream.input_stream.chunks) == PCM
    assert len(client.stream.input_stream.chunks) == 3
    assert client.stream.input_stream.ended is True
    assert client.requests[0]["media_encoding"] == "pcm"
    assert client.requests[0]["media_sample_rate_hz"] == 16000


@pytest.mark.parametrize(
    "hint, language_code",
    [("en", "en-US"), ("EN-GB", "en-GB"), ("fr", "en-US"), ("", "en-US")],
)
def test_language_hint_mapping(hint, language_code):
    client = RecordingStreamingClient()

    asyncio.run(_service(client).transcribe("recording.webm", hint))

    assert client.requests[0]["language_code"] == language_code


def test_conversion_failure_is_not_retryable(monkeypatch):
    async def broken(path, sample_rate):
        raise MediaConversionError("ffmpeg failed: invalid data")

    monkeypatch.setattr(transcribe_module, "convert_to_pcm", broken)
    client = RecordingStreamingClient()

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(_service(client).transcribe("recording.webm"))

    assert excinfo.value.retryable is False
    assert client.requests == []


def test_rejected_request_is_not_retryable():
    client = RecordingStreamingClient(start_error=BadRequestException("bad sample rate"))

    with pytest.raises(TranscriptionError, match="bad sample rate") as excinfo:
        asyncio.run(_service(client).transcribe("recording.webm"))

    assert excinfo.value.retryable is False


@pytest.mark.parametrize(
    "error",
    [LimitExceededException("too many streams"), ConnectionError("stream reset by peer")],
)
def test_other_start_failures_become_retryable_errors(error):
    client = RecordingStreamingClient(start_error=error)

    with pytest.raises(TranscriptionError) as excinfo:
        asyncio.run(_service(client).transcribe("recording.webm"))

    assert excinfo.value.retryable is True
    assert excinfo.value.__cause__ is error


def test_failure_mid_stream_is_wrapped():
    client = RecordingStreamingClient(
        [_event("I like")], stream_error=ConnectionError("stream reset by peer")
    )

    with pytest.raises(TranscriptionError, match="stream reset by peer"):
        asyncio.run(_service(client).transcribe("recording.webm"))
