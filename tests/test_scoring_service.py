"""Scoring orchestration, history and stats."""

from __future__ import annotations

import asyncio
import os
from uuid import uuid4

import pytest

from pronunciation.domain.services import InvalidPromptIndexError
from pronunciation.services.resilience import RetryPolicy
from pronunciation.services.pronunciation_scoring import (
    RECORDINGS_FOLDER,
    PronunciationScoringService,
)
from pronunciation.services.speechace import ScoringProviderError
from pronunciation.services.storage import StorageError

from conftest import FAST_RETRY

PROMPT_TEXT = "I like to travel around the world"


@pytest.fixture
def service(session_repository, storage, scorer, transcriber) -> PronunciationScoringService:
    return PronunciationScoringService(
        session_repository, storage, scorer, transcriber, retry_policy=FAST_RETRY
    )


def _score(service, recording, *, user_id="user-1", prompt_index=0, prompt_text=PROMPT_TEXT):
    return asyncio.run(
        service.score_user_recording(user_id, prompt_index, prompt_text, str(recording))
    )


def test_scores_recording_and_persists_session(
    service, session_repository, storage, scorer, transcriber, recording, isolated_temp_dir
):
    result = _score(service, recording)

    assert result.overall_score == 86
    assert result.fluency_score == 78
    assert result.pronunciation_score == 88
    assert [word.word for word in result.word_scores] == [
        "i", "like", "to", "travel", "around", "the", "world",
    ]
    assert result.transcript == "i like to travel around the world"
    assert result.recording_duration == 1.5

    [upload] = storage.uploads
    assert upload["folder"] == RECORDINGS_FOLDER
    assert upload["user_id"] == "user-1"
    assert upload["public_id"].startswith("user-user-1-prompt-0-")
    assert result.user_audio_url == f"https://cdn.test/{upload['key']}"

    # Scoring reads the stored copy; transcription reads the original upload.
    assert scorer.calls[0]["audio_path"] == storage.downloads[0]
    assert scorer.calls[0]["reference_text"] == PROMPT_TEXT
    assert transcriber.calls == [str(recording)]

    [session] = session_repository.rows
    assert session.id == result.session_id
    assert session.user_audio_public_id == upload["key"]
    assert not os.path.exists(storage.downloads[0])
    assert storage.deleted == []


def test_missing_prompt_text_uses_catalog_sentence(service, scorer, recording):
    _score(service, recording, prompt_index=1, prompt_text="  ")

    assert scorer.calls[0]["reference_text"] == (
        "She studies English every morning before going to school"
    )


def test_transcription_failure_falls_back_to_reference_text(service, transcriber, recording):
    transcriber.fail = True

    result = _score(service, recording)

    assert result.transcript == PROMPT_TEXT
    assert result.overall_score == 86


def test_scoring_failure_removes_upload_and_persists_nothing(
    service, session_repository, storage, scorer, recording
):
    scorer.error = ScoringProviderError("no speech detected", retryable=False)

    with pytest.raises(ScoringProviderError, match="no speech detected"):
        _score(service, recording)

    assert storage.deleted == [storage.uploads[0]["key"]]
    assert storage.objects == {}
    assert session_repository.rows == []
    assert not os.path.exists(storage.downloads[0])


def test_transient_scoring_error_is_retried(service, scorer, recording):
    original = scorer.score
    attempts = []

    async def flaky(*args):
        attempts.append(1)
        if len(attempts) == 1:
            raise ScoringProviderError("Speechace API error: 503")
        return await original(*args)

    scorer.score = flaky

    result = _score(service, recording)

    assert len(attempts) == 2
    assert result.overall_score == 86


def test_upload_failure_stops_before_any_other_adapter(
    service, session_repository, storage, scorer, transcriber, recording
):
    storage.fail_upload = True

    with pytest.raises(StorageError):
        _score(service, recording)

    assert scorer.calls == []
    assert transcriber.calls == []
    assert storage.deleted == []
    assert session_repository.rows == []


def test_download_failure_removes_upload(service, session_repository, storage, scorer, recording):
    storage.fail_download = True

    with pytest.raises(StorageError, match="download failed"):
        _score(service, recording)

    assert scorer.calls == []
    assert storage.deleted == [storage.uploads[0]["key"]]
    assert session_repository.rows == []


def test_invalid_prompt_index_calls_no_adapter(service, storage, scorer, transcriber, recording):
    with pytest.raises(InvalidPromptIndexError):
        _score(service, recording, prompt_index=20)

    assert storage.uploads == []
    assert scorer.calls == []
    assert transcriber.calls == []


def test_latest_session_is_most_recent_for_prompt(service, scorer, recording):
    _score(service, recording, prompt_index=2, prompt_text="first")
    scorer.words = ["second"]
    latest = _score(service, recording, prompt_index=2, prompt_text="second")
    _score(service, recording, prompt_index=3, prompt_text="other prompt")

    found = asyncio.run(service.get_latest_session("user-1", 2))

    assert found.session_id == latest.session_id
    assert [word.word for word in found.word_scores] == ["second"]
    assert asyncio.run(service.get_latest_session("user-1", 4)) is None
    assert asyncio.run(service.get_latest_session("someone-else", 2)) is None


def test_history_is_newest_first_and_limited(service, recording):
    ids = [_score(service, recording, prompt_index=i).session_id for i in range(4)]

    history = asyncio.run(service.get_history("user-1", limit=3))

    assert [item.session_id for item in history] == ids[::-1][:3]
    assert [item.prompt_index for item in history] == [3, 2, 1]


def test_user_stats(service, session_repository, scorer, recording):
    _score(service, recording, prompt_index=5)
    _score(service, recording, prompt_index=1)
    _score(service, recording, prompt_index=5)
    # Vary scores across sessions.
    session_repository.rows[0] = session_repository.rows[0].model_copy(update={"overall_score": 60})
    session_repository.rows[1] = session_repository.rows[1].model_copy(update={"overall_score": 91})

    stats = asyncio.run(service.get_user_stats("user-1"))

    assert stats.total_sessions == 3
    assert stats.average_score == 79
    assert stats.highest_score == 91
    assert stats.lowest_score == 60
    assert stats.completed_prompts == [1, 5]


def test_stats_for_new_user_are_zero(service):
    stats = asyncio.run(service.get_user_stats("newcomer"))

    assert stats.total_sessions == 0
    assert stats.average_score == 0
    assert stats.completed_prompts == []


def test_session_detail_is_limited_to_its_owner(service, recording):
    result = _score(service, recording)

    assert asyncio.run(service.get_session_detail(result.session_id, "user-1")) is not None
    assert asyncio.run(service.get_session_detail(result.session_id, "intruder")) is None
    assert asyncio.run(service.get_session_detail(uuid4(), "user-1")) is None


def test_pipeline_map_lists_stages_in_execution_order():
    from pronunciation.controllers.pronunciation import PIPELINE_STAGES

    assert [stage.order for stage in PIPELINE_STAGES] == list(range(1, 8))
    assert PIPELINE_STAGES[0].module == "pronunciation.pipelines.scoring.ingestion"
    assert PIPELINE_STAGES[-1].name == "Cleanup"


def test_unexpected_transcriber_error_still_falls_back(
    service, session_repository, storage, transcriber, recording
):
    transcriber.error = ConnectionError("stream reset by peer")

    result = _score(service, recording)

    assert result.transcript == PROMPT_TEXT
    assert len(session_repository.rows) == 1
    assert storage.deleted == []


@pytest.mark.parametrize(
    "duration, expected", [(1.5, "i like to travel around the world"), (0.0, PROMPT_TEXT)]
)
def test_transcription_timeout_grows_with_recording_length(
    session_repository, storage, scorer, transcriber, recording, duration, expected
):
    policy = RetryPolicy(
        max_attempts=1,
        base_delay_seconds=0.0,
        max_delay_seconds=0.0,
        jitter_ratio=0.0,
        timeout_seconds=0.2,
    )
    service = PronunciationScoringService(
        session_repository, storage, scorer, transcriber, retry_policy=policy
    )
    storage.duration = duration
    transcriber.delay = 0.5

    result = _score(service, recording)

    assert result.transcript == expected
