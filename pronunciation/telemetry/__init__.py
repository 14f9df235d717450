"""Telemetry helpers and metrics."""

from .metrics import (
    AUDIO_CACHE_LOOKUPS,
    ERROR_COUNTER,
    EXTERNAL_RETRIES,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SCORING_ATTEMPTS,
    TRANSCRIPT_FALLBACKS,
    increment_external_retry,
    increment_transcript_fallback,
    observe_request,
    record_cache_lookup,
    record_scoring_attempt,
)

__all__ = [
    "AUDIO_CACHE_LOOKUPS",
    "ERROR_COUNTER",
    "EXTERNAL_RETRIES",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SCORING_ATTEMPTS",
    "TRANSCRIPT_FALLBACKS",
    "increment_external_retry",
    "increment_transcript_fallback",
    "observe_request",
    "record_cache_lookup",
    "record_scoring_attempt",
]
