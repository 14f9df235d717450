"""Retry-with-backoff and timeout policy for outbound provider calls."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, TypeVar

from pronunciation.config.settings import settings
from pronunciation.telemetry import increment_external_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExternalServiceError(RuntimeError):
    """Base class for failures raised by storage, TTS, scoring and ASR adapters."""

    retryable: bool = True

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with jittered exponential backoff and a per-attempt timeout."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0
    jitter_ratio: float = 0.25
    timeout_seconds: float | None = 30.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        cfg = settings.retry
        return cls(
            max_attempts=cfg.max_attempts,
            base_delay_seconds=cfg.base_delay_seconds,
            max_delay_seconds=cfg.max_delay_seconds,
            jitter_ratio=cfg.jitter_ratio,
            timeout_seconds=cfg.timeout_seconds,
        )

    def extended_by(self, extra_seconds: float) -> "RetryPolicy":
        """Copy of this policy whose per-attempt timeout is longer by ``extra_seconds``."""

        if not self.timeout_seconds or extra_seconds <= 0:
            return self
        return replace(self, timeout_seconds=self.timeout_seconds + extra_seconds)

    def worst_case_seconds(self) -> float | None:
        """Longest time a retried call can take, or None without a timeout."""

        if not self.timeout_seconds:
            return None
        attempts = max(1, self.max_attempts)
        waits = sum(
            min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))
            * (1 + self.jitter_ratio)
            for attempt in range(1, attempts)
        )
        return attempts * self.timeout_seconds + waits

    def backoff(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (1-based)."""

        delay = min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))
        if delay <= 0 or self.jitter_ratio <= 0:
            return max(0.0, delay)
        spread = delay * self.jitter_ratio
        return max(0.0, delay + random.uniform(-spread, spread))


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    adapter: str,
    error_type: type[ExternalServiceError] = ExternalServiceError,
) -> T:
    """Run ``operation`` under ``policy``.

    Timeouts are converted into ``error_type``. Errors flagged as
    non-retryable are raised on the first attempt. Anything that is not an
    ``ExternalServiceError`` propagates untouched.
    """

    attempts = max(1, policy.max_attempts)
    last_error: ExternalServiceError | None = None

    for attempt in range(1, attempts + 1):
        try:
            if policy.timeout_seconds:
                return await asyncio.wait_for(operation(), timeout=policy.timeout_seconds)
            return await operation()
        except asyncio.TimeoutError:
            last_error = error_type(
                f"{adapter} timed out after {policy.timeout_seconds}s"
            )
        except ExternalServiceError as exc:
            if not exc.retryable:
                raise
            last_error = exc

        if attempt < attempts:
            delay = policy.backoff(attempt)
            increment_external_retry(adapter)
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                adapter,
                attempt,
                attempts,
                delay,
                last_error,
            )
            await asyncio.sleep(delay)

    logger.error("%s failed after %d attempts: %s", adapter, attempts, last_error)
    raise last_error


__all__ = ["ExternalServiceError", "RetryPolicy", "call_with_retry"]
