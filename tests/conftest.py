"""Shared fakes for service and endpoint tests."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from pathlib import Path
import sys
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from pronunciation.application.interfaces import (  # noqa: E402
    ObjectStorageInterface,
    PracticeSessionRepositoryInterface,
    PromptAudioRepositoryInterface,
    PronunciationScorerInterface,
    SpeechSynthesizerInterface,
    TranscriberInterface,
    WordAudioRepositoryInterface,
)
from pronunciation.config.settings import settings  # noqa: E402
from pronunciation.domain.models import (  # noqa: E402
    AudioCacheStatus,
    NewPracticeSession,
    PhoneScore,
    PracticeSessionRecord,
    PromptAudioRecord,
    ProviderScore,
    StoredAudio,
    WordAudioRecord,
    WordScore,
)
from pronunciation.domain.services import ClaimLostError  # noqa: E402
from pronunciation.models.base import utcnow  # noqa: E402
from pronunciation.services.resilience import RetryPolicy  # noqa: E402
from pronunciation.services.storage import StorageError  # noqa: E402
from pronunciation.services.transcribe import TranscriptionError  # noqa: E402
from pronunciation.services.tts import SpeechSynthesisError  # noqa: E402

FAST_RETRY = RetryPolicy(
    max_attempts=2,
    base_delay_seconds=0.0,
    max_delay_seconds=0.0,
    jitter_ratio=0.0,
    timeout_seconds=None,
)


class FakeStorage(ObjectStorageInterface):
    """In-memory object store that mimics S3 keys and URLs."""

    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.uploads: List[dict] = []
        self.downloads: List[str] = []
        self.deleted: List[str] = []
        self.fail_upload = False
        self.fail_download = False
        self.duration = 1.5

    async def upload(self, local_path, *, folder, public_id, user_id=None) -> StoredAudio:
        if self.fail_upload:
            raise StorageError("S3 unavailable", retryable=False)
        key = f"{folder}/{user_id}/{public_id}.mp3" if user_id else f"{folder}/{public_id}.mp3"
        with open(local_path, "rb") as fp:
            body = fp.read()
        self.objects[key] = body
        self.uploads.append({"folder": folder, "public_id": public_id, "user_id": user_id, "key": key})
        return StoredAudio(
            url=f"http://cdn.test/{key}",
            secure_url=f"https://cdn.test/{key}",
            public_id=key,
            duration=self.duration,
            bytes=len(body),
        )

    async def download(self, public_id, local_path) -> str:
        if self.fail_download:
            raise StorageError("download failed", retryable=False)
        with open(local_path, "wb") as fp:
            fp.write(self.objects[public_id])
        self.downloads.append(local_path)
        return local_path

    async def delete(self, public_id) -> None:
        self.deleted.append(public_id)
        self.objects.pop(public_id, None)


class FakeSynthesizer(SpeechSynthesizerInterface):
    """Writes a small placeholder MP3 per call; can be slowed down or made to fail."""

    def __init__(self, tmp_dir: Path, delay: float = 0.0) -> None:
        self.tmp_dir = tmp_dir
        self.delay = delay
        self.calls: List[dict] = []
        self.fail_times = 0

    @property
    def default_voice(self) -> str:
        return "Joanna"

    async def synthesize(self, text, *, voice=None, speed=1.0) -> str:
        self.calls.append({"text": text, "voice": voice, "speed": speed})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise SpeechSynthesisError("Polly throttled", retryable=False)
        path = self.tmp_dir / f"tts-{uuid4().hex}.mp3"
        path.write_bytes(b"ID3" + text.encode("utf-8"))
        return str(path)


def make_word_scores(words: List[str]) -> List[WordScore]:
    scores = []
    for position, word in enumerate(words):
        scores.append(
            WordScore(
                word=word,
                score=80 + position,
                start_time=position * 0.5,
                end_time=position * 0.5 + 0.4,
                phone_scores=[PhoneScore(phone="ay", sound_most_like="ay", score=90)],
            )
        )
    return scores


class FakeScorer(PronunciationScorerInterface):
    def __init__(self, words: Optional[List[str]] = None) -> None:
        self.words = words or ["i", "like", "to", "travel", "around", "the", "world"]
        self.calls: List[dict] = []
        self.error: Optional[Exception] = None

    async def score(self, audio_path, reference_text, user_id) -> ProviderScore:
        self.calls.append(
            {"audio_path": audio_path, "reference_text": reference_text, "user_id": user_id}
        )
        if self.error is not None:
            raise self.error
        return ProviderScore(
            quality_score=86,
            fluency_score=78,
            pronunciation_score=88,
            word_scores=make_word_scores(self.words),
        )


class FakeTranscriber(TranscriberInterface):
    def __init__(self, transcript: str = "i like to travel around the world") -> None:
        self.transcript = transcript
        self.calls: List[str] = []
        self.fail = False
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def transcribe(self, audio_path, language_hint="en") -> str:
        self.calls.append(audio_path)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.fail:
            raise TranscriptionError("Transcribe unavailable", retryable=False)
        return self.transcript


def _held_by(row, claim_id) -> bool:
    return (
        row is not None
        and row.status == AudioCacheStatus.PENDING
        and row.claim_id == claim_id
    )


class FakePromptAudioRepository(PromptAudioRepositoryInterface):
    def __init__(self) -> None:
        self.rows: Dict[int, PromptAudioRecord] = {}

    async def get(self, prompt_index):
        return self.rows.get(prompt_index)

    async def claim(self, prompt_index, prompt_text, voice):
        if prompt_index in self.rows:
            return None
        claim_id = uuid4()
        self.rows[prompt_index] = PromptAudioRecord(
            prompt_index=prompt_index,
            prompt_text=prompt_text,
            status=AudioCacheStatus.PENDING,
            voice=voice,
            claim_id=claim_id,
            claimed_at=utcnow(),
        )
        return claim_id

    async def mark_ready(self, prompt_index, claim_id, audio):
        if not _held_by(self.rows.get(prompt_index), claim_id):
            raise ClaimLostError(f"Claim {claim_id} no longer holds prompt {prompt_index}")
        row = self.rows[prompt_index].model_copy(
            update={
                "status": AudioCacheStatus.READY,
                "audio_url": audio.secure_url,
                "audio_public_id": audio.public_id,
                "duration": audio.duration,
                "generated_at": utcnow(),
            }
        )
        self.rows[prompt_index] = row
        return row

    async def release(self, prompt_index, claim_id):
        if _held_by(self.rows.get(prompt_index), claim_id):
            del self.rows[prompt_index]

    async def delete(self, prompt_index):
        return self.rows.pop(prompt_index, None)

    async def list_ready(self):
        return [
            row
            for _, row in sorted(self.rows.items())
            if row.status == AudioCacheStatus.READY
        ]


class FakeWordAudioRepository(WordAudioRepositoryInterface):
    def __init__(self) -> None:
        self.rows: Dict[str, WordAudioRecord] = {}

    async def get(self, word):
        return self.rows.get(word)

    async def claim(self, word, voice):
        if word in self.rows:
            return None
        claim_id = uuid4()
        self.rows[word] = WordAudioRecord(
            word=word,
            status=AudioCacheStatus.PENDING,
            voice=voice,
            claim_id=claim_id,
            claimed_at=utcnow(),
        )
        return claim_id

    async def mark_ready(self, word, claim_id, audio):
        if not _held_by(self.rows.get(word), claim_id):
            raise ClaimLostError(f"Claim {claim_id} no longer holds word '{word}'")
        row = self.rows[word].model_copy(
            update={
                "status": AudioCacheStatus.READY,
                "audio_url": audio.secure_url,
                "audio_public_id": audio.public_id,
                "duration": audio.duration,
                "generated_at": utcnow(),
            }
        )
        self.rows[word] = row
        return row

    async def release(self, word, claim_id):
        if _held_by(self.rows.get(word), claim_id):
            del self.rows[word]

    async def increment_usage(self, word):
        row = self.rows[word]
        self.rows[word] = row.model_copy(update={"times_used": row.times_used + 1})
        return self.rows[word].times_used

    async def most_used(self, limit=50):
        ready = [row for row in self.rows.values() if row.status == AudioCacheStatus.READY]
        return sorted(ready, key=lambda row: (-row.times_used, row.word))[:limit]

    async def count_ready(self):
        return sum(1 for row in self.rows.values() if row.status == AudioCacheStatus.READY)


class FakePracticeSessionRepository(PracticeSessionRepositoryInterface):
    def __init__(self) -> None:
        self.rows: List[PracticeSessionRecord] = []
        self._clock = utcnow()

    async def create(self, session: NewPracticeSession) -> PracticeSessionRecord:
        # Strictly increasing timestamps keep ordering assertions deterministic.
        self._clock += timedelta(seconds=1)
        record = PracticeSessionRecord(**session.model_dump(), id=uuid4(), completed_at=self._clock)
        self.rows.append(record)
        return record

    async def get(self, session_id: UUID):
        return next((row for row in self.rows if row.id == session_id), None)

    def _for_user(self, user_id):
        rows = [row for row in self.rows if row.user_id == user_id]
        return sorted(rows, key=lambda row: row.completed_at, reverse=True)

    async def latest_for_prompt(self, user_id, prompt_index):
        rows = [row for row in self._for_user(user_id) if row.prompt_index == prompt_index]
        return rows[0] if rows else None

    async def recent(self, user_id, limit=10):
        return self._for_user(user_id)[:limit]

    async def list_for_user(self, user_id):
        return self._for_user(user_id)


@pytest.fixture(autouse=True)
def isolated_temp_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point temp audio files at the per-test directory."""

    temp_dir = tmp_path / "temp-audio"
    monkeypatch.setattr(settings, "temp_audio_dir", str(temp_dir))
    return temp_dir


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def synthesizer(tmp_path: Path) -> FakeSynthesizer:
    return FakeSynthesizer(tmp_path)


@pytest.fixture
def scorer() -> FakeScorer:
    return FakeScorer()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def prompt_repository() -> FakePromptAudioRepository:
    return FakePromptAudioRepository()


@pytest.fixture
def word_repository() -> FakeWordAudioRepository:
    return FakeWordAudioRepository()


@pytest.fixture
def session_repository() -> FakePracticeSessionRepository:
    return FakePracticeSessionRepository()


@pytest.fixture
def recording(tmp_path: Path) -> Path:
    path = tmp_path / "recording.webm"
    path.write_bytes(b"\x1aE\xdf\xa3fake-webm-audio")
    return path
