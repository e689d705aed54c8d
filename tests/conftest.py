"""Shared fixtures: scripted executors and queue builders."""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from qudemo_jobs.jobs.events import JobEvent
from qudemo_jobs.jobs.executors import JobExecutor
from qudemo_jobs.jobs.in_process_queue import InProcessQueue, QueueConfig
from qudemo_jobs.jobs.models import Job, JobKind
from qudemo_jobs.jobs.retry import RetryPolicy


class ScriptedExecutor(JobExecutor):
    """Executor whose outcome is decided by a per-call behavior function.

    ``behavior(job)`` may return a result dict, raise, or be a coroutine.
    When ``gated`` is set, each call waits on ``release()`` before finishing.
    """

    def __init__(self, behavior: Optional[Callable[[Job], Any]] = None, gated: bool = False):
        self.behavior = behavior or (lambda job: {"ok": True})
        self.gated = gated
        self.calls: List[int] = []
        self.running = 0
        self.max_running = 0
        self._gate = asyncio.Semaphore(0) if gated else None

    def release(self, n: int = 1) -> None:
        for _ in range(n):
            self._gate.release()

    async def execute(self, job, report_progress):
        self.calls.append(job.id)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            if self._gate is not None:
                await self._gate.acquire()
            result = self.behavior(job)
            if asyncio.iscoroutine(result):
                result = await result
            report_progress(100, "done")
            return result
        finally:
            self.running -= 1


def video_ok(job: Job) -> Dict[str, Any]:
    return {"video_id": f"vid-{job.id}", "status": "completed"}


class RecordingRetryPolicy(RetryPolicy):
    """Retry policy that remembers every delay it hands out."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.delays: List[float] = []

    def get_delay(self, attempt: int) -> float:
        delay = super().get_delay(attempt)
        self.delays.append(delay)
        return delay


class EventRecorder:
    def __init__(self):
        self.events: List[JobEvent] = []

    def __call__(self, event: JobEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[JobEvent]:
        return [e for e in self.events if e.type == event_type]


def video_payload(url: str = "https://youtu.be/dQw4w9WgXcQ", company: str = "acme") -> Dict[str, Any]:
    return {"video_url": url, "company_name": company}


def qa_payload(question: str = "How do I export?") -> Dict[str, Any]:
    return {"question": question, "company_name": "acme", "interaction_id": "int-1"}


@pytest.fixture
def make_queue():
    """Build an InProcessQueue with fast timings and an event recorder attached."""

    def _make(
        video_executor: Optional[JobExecutor] = None,
        qa_executor: Optional[JobExecutor] = None,
        retry_policy: Optional[RetryPolicy] = None,
        **config_overrides,
    ):
        config = QueueConfig(
            max_concurrent_videos=2,
            max_concurrent_qa=10,
            job_timeout=2.0,
            retry_attempts=3,
            backoff_delay=0.01,
            poll_interval=0.005,
        )
        for key, value in config_overrides.items():
            setattr(config, key, value)

        executors = {
            JobKind.VIDEO: video_executor or ScriptedExecutor(video_ok),
            JobKind.QA: qa_executor or ScriptedExecutor(),
        }
        queue = InProcessQueue(executors, config=config, retry_policy=retry_policy)
        recorder = EventRecorder()
        queue.events.subscribe(recorder)
        return queue, recorder

    return _make


async def wait_for_event(recorder: EventRecorder, event_type: str, count: int = 1, timeout: float = 3.0):
    """Poll until ``count`` events of ``event_type`` have been seen."""

    async def _poll():
        while len(recorder.of_type(event_type)) < count:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)
