"""Job lifecycle events and a small callback-based event bus."""

import logging
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class _JobEvent(BaseModel):
    lane: str
    job_id: int


class JobAdded(_JobEvent):
    type: Literal["job_added"] = "job_added"
    priority: int


class JobStarted(_JobEvent):
    type: Literal["job_started"] = "job_started"


class JobProgress(_JobEvent):
    type: Literal["job_progress"] = "job_progress"
    percent: int
    message: str = ""


class JobCompleted(_JobEvent):
    type: Literal["job_completed"] = "job_completed"
    result: Optional[Dict[str, Any]] = None


class JobFailed(_JobEvent):
    type: Literal["job_failed"] = "job_failed"
    error: str
    attempts: int


JobEvent = Union[JobAdded, JobStarted, JobProgress, JobCompleted, JobFailed]

Subscriber = Callable[[JobEvent], None]


class EventBus:
    """Delivers job events to registered callbacks, in registration order."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: JobEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Event subscriber failed on %s", event.type,
                    extra={"lane": event.lane, "job_id": event.job_id},
                )
