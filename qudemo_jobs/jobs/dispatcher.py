"""Job dispatcher interface."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from qudemo_jobs.jobs.models import Job, QAPayload, QueueStatus, VideoPayload


class JobDispatcher(ABC):
    """Producer-facing interface of the job queue."""

    @abstractmethod
    async def enqueue_video(
        self,
        payload: Union[VideoPayload, Dict[str, Any]],
        priority: Optional[int] = None,
    ) -> int:
        """Queue a video job. Returns job_id.

        ``priority`` defaults to the configured video priority.

        Raises DuplicateInProgress / AlreadyProcessed if the video is taken.
        """
        ...

    @abstractmethod
    async def enqueue_qa(
        self,
        payload: Union[QAPayload, Dict[str, Any]],
        priority: Optional[int] = None,
    ) -> int:
        """Queue a Q&A job at ``priority`` (default: configured Q&A priority). Returns job_id."""
        ...

    @abstractmethod
    def get_job(self, job_id: int, lane: str) -> Optional[Job]:
        """Look up a job in any state."""
        ...

    @abstractmethod
    def get_queue_status(self) -> QueueStatus:
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher (e.g., start worker loop)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher gracefully."""
        ...
