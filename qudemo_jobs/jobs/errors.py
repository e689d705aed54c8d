"""Queue error taxonomy.

Admission errors are raised synchronously to the producer. Execution
errors carry a ``retryable`` flag that the retry policy branches on.
"""

from typing import Optional


class QueueError(Exception):
    """Base class for all job-queue errors."""


class UnknownLane(QueueError):
    def __init__(self, lane: str):
        super().__init__(f'Invalid queue type "{lane}". Must be "video" or "qa"')
        self.lane = lane


# ---------------------------------------------------------------------------
# Admission errors
# ---------------------------------------------------------------------------

class AdmissionError(QueueError):
    """Raised at enqueue time; no job is created."""

    def __init__(self, message: str, resource_key: str):
        super().__init__(message)
        self.resource_key = resource_key


class DuplicateInProgress(AdmissionError):
    def __init__(self, resource_key: str):
        super().__init__("Video is already being processed", resource_key)


class AlreadyProcessed(AdmissionError):
    def __init__(self, resource_key: str):
        super().__init__("Video has already been processed", resource_key)


# ---------------------------------------------------------------------------
# Execution errors
# ---------------------------------------------------------------------------

class JobExecutionError(QueueError):
    """Failure of a single job attempt."""

    retryable: bool = False


class JobTimedOut(JobExecutionError):
    retryable = True

    def __init__(self, timeout_s: float):
        super().__init__(f"Job timed out after {timeout_s:g}s")
        self.timeout_s = timeout_s


class UpstreamUnavailable(JobExecutionError):
    """Processing service unreachable or reporting itself unavailable."""


class UpstreamMalformedResponse(JobExecutionError):
    """Processing service answered without the fields we need."""


class UpstreamRejected(JobExecutionError):
    """Processing service refused the request (private video, 403, ...)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(JobExecutionError):
    def __init__(self, message: str):
        super().__init__(f"Database error: {message}")


class RecordNotFound(JobExecutionError):
    """A referenced record (e.g. the company) does not exist."""


def is_retryable(exc: BaseException) -> bool:
    """Terminal errors are typed; anything unclassified gets retried."""
    if isinstance(exc, JobExecutionError):
        return exc.retryable
    return True
