"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
        30.0,
    ),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

AUDIO_CACHE_LOOKUPS = Counter(
    "audio_cache_lookups_total",
    "Prompt/word audio lookups by outcome",
    ("kind", "outcome"),
)

SCORING_ATTEMPTS = Counter(
    "pronunciation_scoring_attempts_total",
    "Pronunciation scoring requests by outcome",
    ("outcome",),
)

TRANSCRIPT_FALLBACKS = Counter(
    "pronunciation_transcript_fallbacks_total",
    "Scoring requests that fell back to the reference text as transcript",
)

EXTERNAL_RETRIES = Counter(
    "external_call_retries_total",
    "Retries issued against external providers",
    ("adapter",),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def record_cache_lookup(kind: str, outcome: str) -> None:
    """Count a cache lookup; outcome is hit, miss or timeout."""

    AUDIO_CACHE_LOOKUPS.labels(kind=kind, outcome=outcome).inc()


def record_scoring_attempt(outcome: str) -> None:
    SCORING_ATTEMPTS.labels(outcome=outcome).inc()


def increment_transcript_fallback() -> None:
    TRANSCRIPT_FALLBACKS.inc()


def increment_external_retry(adapter: str) -> None:
    EXTERNAL_RETRIES.labels(adapter=adapter or "unknown").inc()
