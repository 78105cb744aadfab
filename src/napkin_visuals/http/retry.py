"""Retry policy for transient API failures."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0
HTTP_TOO_MANY_REQUESTS = 429


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Fixed exponential backoff without jitter.

    `max_retries` counts attempts after the first one, so a request is sent
    at most `max_retries + 1` times.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS

    def is_retryable(self, status_code: int) -> bool:
        return status_code == HTTP_TOO_MANY_REQUESTS or 500 <= status_code <= 599

    def delay_for(self, retry_index: int) -> float:
        """Delay before retry number `retry_index` (0-based)."""

        return self.base_delay_seconds * (2**retry_index)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1
