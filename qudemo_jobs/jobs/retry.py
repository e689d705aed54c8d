"""Retry policy: terminal vs. retryable, and the backoff schedule."""

from dataclasses import dataclass

from qudemo_jobs.jobs.errors import is_retryable


@dataclass
class RetryPolicy:
    """Exponential backoff without jitter.

    ``max_attempts`` bounds the number of failed attempts before a
    retryable job is failed terminally.
    """
    max_attempts: int = 3
    base_delay_seconds: float = 5.0

    def get_delay(self, attempt: int) -> float:
        """Delay before re-entering the lane after failed attempt ``attempt`` (1-based)."""
        return self.base_delay_seconds * (2 ** (attempt - 1))

    def should_retry(self, exc: BaseException, attempts: int) -> bool:
        """``attempts`` is the count after the current failure was recorded."""
        if not is_retryable(exc):
            return False
        return attempts < self.max_attempts
