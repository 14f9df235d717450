"""Speechace client and word-score normalization."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from pronunciation.services.speechace import (
    SCORING_PATH,
    ScoringProviderError,
    SpeechaceClient,
    parse_word_scores,
)


def _word(word, *, syllables=None, phones=None, score=90):
    return {
        "word": word,
        "quality_score": score,
        "syllable_score_list": syllables if syllables is not None else [],
        "phone_score_list": phones if phones is not None else [],
    }


def test_word_timing_comes_from_first_and_last_syllable():
    [parsed] = parse_word_scores(
        [
            _word(
                "travel",
                syllables=[{"extent": [1200, 1450]}, {"extent": [1450, 1800]}],
                phones=[{"phone": "t", "sound_most_like": None, "quality_score": 70, "stress_level": 1}],
            )
        ]
    )

    assert parsed.start_time == pytest.approx(1.2)
    assert parsed.end_time == pytest.approx(1.8)
    assert parsed.phone_scores[0].sound_most_like == "t"
    assert parsed.phone_scores[0].stress_level == 1


def test_word_without_syllables_uses_phone_extents():
    [parsed] = parse_word_scores(
        [
            _word(
                "a",
                phones=[
                    {"phone": "ah", "quality_score": 88, "extent": [300, 360]},
                    {"phone": "h", "quality_score": 88, "extent": [360, 420]},
                ],
            )
        ]
    )

    assert parsed.start_time == pytest.approx(0.3)
    assert parsed.end_time == pytest.approx(0.42)


def test_word_without_any_extent_defaults_to_zero(caplog):
    with caplog.at_level("WARNING"):
        [parsed] = parse_word_scores([_word("uh")])

    assert (parsed.start_time, parsed.end_time) == (0.0, 0.0)
    assert "No timing information" in caplog.text


def test_truncated_extents_are_skipped():
    [partial, broken] = parse_word_scores(
        [
            _word(
                "world",
                syllables=[{"extent": [1200]}],
                phones=[
                    {"phone": "w", "quality_score": 80, "extent": [1200, 1300]},
                    {"phone": "d", "quality_score": 80, "extent": [1300]},
                ],
            ),
            _word("the", syllables=[{"extent": [500]}], phones=[{"phone": "dh", "extent": []}]),
        ]
    )

    assert partial.start_time == pytest.approx(1.2)
    assert partial.end_time == pytest.approx(1.3)
    assert (broken.start_time, broken.end_time) == (0.0, 0.0)


def test_scores_are_clamped_and_timing_ordered():
    [parsed] = parse_word_scores(
        [
            _word(
                "odd",
                score=104,
                syllables=[{"extent": [900, 500]}],
                phones=[{"phone": "aa", "quality_score": -3}],
            )
        ]
    )

    assert parsed.score == 100
    assert parsed.phone_scores[0].score == 0
    assert 0 <= parsed.start_time <= parsed.end_time


def _client(handler, **kwargs):
    return SpeechaceClient(
        api_key="test-key",
        api_endpoint="https://speechace.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_score_posts_multipart_and_normalizes_response(tmp_path):
    audio = tmp_path / "copy.mp3"
    audio.write_bytes(b"ID3-fake")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        body = request.read()
        seen["path"] = request.url.path
        seen["key"] = request.url.params.get("key")
        seen["body"] = body
        return httpx.Response(
            200,
            json={
                "status": "success",
                "text_score": {
                    "quality_score": 82,
                    "fluency_score": 75,
                    "pronunciation_score": 84,
                    "word_score_list": [
                        _word("hello", syllables=[{"extent": [0, 250]}, {"extent": [250, 600]}])
                    ],
                },
            },
        )

    result = asyncio.run(_client(handler).score(str(audio), "hello", "user-1"))

    assert seen["path"] == SCORING_PATH
    assert seen["key"] == "test-key"
    assert b'name="text"' in seen["body"]
    assert b'name="user_audio_file"' in seen["body"]
    assert b"en-us" in seen["body"]
    assert b"user-1" in seen["body"]
    assert result.quality_score == 82
    assert result.fluency_score == 75
    assert result.word_scores[0].end_time == pytest.approx(0.6)


def test_provider_error_status_carries_status_message(tmp_path):
    audio = tmp_path / "copy.mp3"
    audio.write_bytes(b"ID3-fake")

    def handler(request):
        return httpx.Response(200, json={"status": "error", "status_message": "no speech detected"})

    with pytest.raises(ScoringProviderError, match="no speech detected") as excinfo:
        asyncio.run(_client(handler).score(str(audio), "hello", "user-1"))

    assert excinfo.value.retryable is False


def test_server_errors_are_retryable_client_errors_are_not(tmp_path):
    audio = tmp_path / "copy.mp3"
    audio.write_bytes(b"ID3-fake")

    def server_error(request):
        return httpx.Response(503, text="busy")

    def bad_request(request):
        return httpx.Response(400, content=json.dumps({"message": "bad key"}))

    with pytest.raises(ScoringProviderError) as server_exc:
        asyncio.run(_client(server_error).score(str(audio), "hello", "u"))
    with pytest.raises(ScoringProviderError, match="bad key") as client_exc:
        asyncio.run(_client(bad_request).score(str(audio), "hello", "u"))

    assert server_exc.value.retryable is True
    assert client_exc.value.retryable is False


def test_missing_api_key_fails_without_network(tmp_path):
    audio = tmp_path / "copy.mp3"
    audio.write_bytes(b"ID3-fake")
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    client = SpeechaceClient(
        api_key="",
        api_endpoint="https://speechace.test",
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(ScoringProviderError, match="not configured"):
        asyncio.run(client.score(str(audio), "hello", "u"))
    assert calls == []
