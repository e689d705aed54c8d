"""In-process job queue using asyncio.

Two priority lanes (video, Q&A) with independent concurrency ceilings.
A single dispatch loop polls the lanes at a fixed interval and launches
each job as its own task; it never waits for a job to finish. Every
attempt is bounded by a timeout and failures go through the retry
policy.

All lane, in-flight and dedup bookkeeping happens on the event loop
thread between awaits, so no locks are needed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Union

from qudemo_jobs.config import Settings
from qudemo_jobs.jobs.dedup import DedupGuard
from qudemo_jobs.jobs.dispatcher import JobDispatcher
from qudemo_jobs.jobs.errors import JobTimedOut, UnknownLane, UpstreamMalformedResponse
from qudemo_jobs.jobs.events import (
    EventBus,
    JobAdded,
    JobCompleted,
    JobFailed,
    JobProgress,
    JobStarted,
)
from qudemo_jobs.jobs.executors import JobExecutor
from qudemo_jobs.jobs.history import JobHistory
from qudemo_jobs.jobs.lane import PriorityLane
from qudemo_jobs.jobs.models import (
    Job,
    JobKind,
    JobStatus,
    LaneStatus,
    Priority,
    QAPayload,
    QueueStatus,
    VideoPayload,
    utcnow,
)
from qudemo_jobs.jobs.retry import RetryPolicy
from qudemo_jobs.lib.json_logger import job_logger

logger = logging.getLogger(__name__)


@dataclass
class QueueConfig:
    """Queue tuning. Durations are in seconds."""
    max_concurrent_videos: int = 2
    max_concurrent_qa: int = 10
    job_timeout: float = 300.0
    retry_attempts: int = 3
    backoff_delay: float = 5.0
    poll_interval: float = 1.0
    video_start_delay: float = 0.0
    history_limit: int = 1000
    video_priority: int = Priority.MEDIUM
    qa_priority: int = Priority.HIGH

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueueConfig":
        return cls(
            max_concurrent_videos=settings.queue_max_concurrent_videos,
            max_concurrent_qa=settings.queue_max_concurrent_qa,
            job_timeout=settings.queue_job_timeout_ms / 1000,
            retry_attempts=settings.queue_retry_attempts,
            backoff_delay=settings.queue_backoff_delay_ms / 1000,
            poll_interval=settings.queue_poll_interval_ms / 1000,
            video_start_delay=settings.queue_video_start_delay_ms / 1000,
            history_limit=settings.queue_job_history_limit,
            video_priority=settings.queue_video_priority,
            qa_priority=settings.queue_qa_priority,
        )


class _LaneState:
    """Everything the queue tracks for one lane."""

    def __init__(self, kind: JobKind, max_concurrent: int, history_limit: int):
        self.kind = kind
        self.lane = PriorityLane(kind.value)
        self.max_concurrent = max(1, max_concurrent)
        self.active = 0
        self.retrying: Dict[int, Job] = {}
        self.history = JobHistory(history_limit)

    @property
    def name(self) -> str:
        return self.kind.value

    def status(self) -> LaneStatus:
        counts = self.lane.counts()
        finished = self.history.counts()
        return LaneStatus(
            waiting=counts["waiting"] + len(self.retrying),
            processing=counts["processing"],
            active=self.active,
            total=counts["total"] + len(self.retrying),
            completed=finished["completed"],
            failed=finished["failed"],
            max_concurrent=self.max_concurrent,
        )


class InProcessQueue(JobDispatcher):
    """Local async job queue with per-lane concurrency, dedup and retries."""

    def __init__(
        self,
        executors: Dict[JobKind, JobExecutor],
        config: Optional[QueueConfig] = None,
        events: Optional[EventBus] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.config = config or QueueConfig()
        self.events = events or EventBus()
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.config.retry_attempts,
            base_delay_seconds=self.config.backoff_delay,
        )
        self.dedup = DedupGuard()
        self._executors = executors
        self._lanes: Dict[JobKind, _LaneState] = {
            JobKind.VIDEO: _LaneState(
                JobKind.VIDEO, self.config.max_concurrent_videos, self.config.history_limit
            ),
            JobKind.QA: _LaneState(
                JobKind.QA, self.config.max_concurrent_qa, self.config.history_limit
            ),
        }
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._job_tasks: Set[asyncio.Task] = set()
        self._retry_tasks: Set[asyncio.Task] = set()

        logger.info(
            "Job queue initialized - videos: %d, qa: %d",
            self._lanes[JobKind.VIDEO].max_concurrent,
            self._lanes[JobKind.QA].max_concurrent,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    async def enqueue_video(
        self,
        payload: Union[VideoPayload, Dict[str, Any]],
        priority: Optional[int] = None,
    ) -> int:
        if not isinstance(payload, VideoPayload):
            payload = VideoPayload.model_validate(payload)
        priority = Priority(self.config.video_priority if priority is None else priority)

        resource_key = payload.resource_key
        self.dedup.claim(resource_key)

        state = self._lanes[JobKind.VIDEO]
        job_id = state.lane.enqueue(JobKind.VIDEO, payload, priority, resource_key=resource_key)
        self.events.publish(JobAdded(lane=state.name, job_id=job_id, priority=priority))
        logger.info(
            "Video job %d queued", job_id,
            extra={"lane": state.name, "job_id": job_id, "priority": int(priority)},
        )
        return job_id

    async def enqueue_qa(
        self,
        payload: Union[QAPayload, Dict[str, Any]],
        priority: Optional[int] = None,
    ) -> int:
        if not isinstance(payload, QAPayload):
            payload = QAPayload.model_validate(payload)
        priority = Priority(self.config.qa_priority if priority is None else priority)

        state = self._lanes[JobKind.QA]
        job_id = state.lane.enqueue(JobKind.QA, payload, priority)
        self.events.publish(JobAdded(lane=state.name, job_id=job_id, priority=priority))
        logger.info(
            "QA job %d queued", job_id,
            extra={"lane": state.name, "job_id": job_id, "priority": int(priority)},
        )
        return job_id

    def get_job(self, job_id: int, lane: str) -> Optional[Job]:
        state = self._lane_state(lane)
        return (
            state.lane.find_by_id(job_id)
            or state.lane.processing.get(job_id)
            or state.retrying.get(job_id)
            or state.history.get(job_id)
        )

    def get_queue_status(self) -> QueueStatus:
        return QueueStatus(
            video=self._lanes[JobKind.VIDEO].status(),
            qa=self._lanes[JobKind.QA].status(),
            processed_resource_keys=self.dedup.processed_keys,
            processing_resource_keys=self.dedup.processing_keys,
        )

    def get_lane_status(self, lane: str) -> LaneStatus:
        return self._lane_state(lane).status()

    def clear_dedup_cache(self) -> None:
        self.dedup.clear()

    def clear_resource(self, resource_key: str) -> None:
        self.dedup.clear_resource(resource_key)

    def clear_video(self, video_url: str, company: str) -> str:
        """Forget a video by URL and company id/name. Returns the cleared key."""
        resource_key = f"{video_url}_{company}"
        self.dedup.clear_resource(resource_key)
        return resource_key

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._dispatch_loop(), name="job-dispatch-loop")
        logger.info("Job dispatcher started")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        pending = list(self._retry_tasks) + list(self._job_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Cancelled %d in-flight or retrying job task(s)", len(pending))
        logger.info("Job dispatcher stopped")

    async def join(self) -> None:
        """Wait until no job attempt is executing (pending retries excluded)."""
        while self._job_tasks:
            await asyncio.gather(*list(self._job_tasks), return_exceptions=True)

    async def _dispatch_loop(self) -> None:
        while self._running:
            try:
                await self.dispatch_pending()
            except Exception:
                logger.exception("Dispatch loop error")
            await asyncio.sleep(self.config.poll_interval)

    async def dispatch_pending(self) -> int:
        """Start as many queued jobs as the lane ceilings allow.

        Returns the number of jobs launched.
        """
        launched = 0
        for state in self._lanes.values():
            while state.active < state.max_concurrent:
                job = state.lane.dequeue_next()
                if job is None:
                    break

                state.active += 1
                state.lane.mark_processing(job)

                if (
                    state.kind == JobKind.VIDEO
                    and state.active > 1
                    and self.config.video_start_delay > 0
                ):
                    await asyncio.sleep(self.config.video_start_delay)

                task = asyncio.create_task(
                    self._run_job(state, job), name=f"{state.name}-job-{job.id}"
                )
                self._job_tasks.add(task)
                task.add_done_callback(self._on_job_task_done)
                launched += 1
        return launched

    def _on_job_task_done(self, task: asyncio.Task) -> None:
        self._job_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Job task %s crashed", task.get_name(), exc_info=exc)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run_job(self, state: _LaneState, job: Job) -> None:
        log = job_logger(__name__, state.name, job.id, job.resource_key)
        succeeded = False
        try:
            job.status = JobStatus.PROCESSING
            if job.started_at is None:
                job.started_at = utcnow()
            self.events.publish(JobStarted(lane=state.name, job_id=job.id))
            log.info("Processing %s job %d (attempt %d)", state.name, job.id, job.attempts + 1)

            def report_progress(percent: int, message: str) -> None:
                job.progress = percent
                job.progress_message = message
                self.events.publish(
                    JobProgress(lane=state.name, job_id=job.id, percent=percent, message=message)
                )

            executor = self._executors[job.kind]
            try:
                result = await asyncio.wait_for(
                    executor.execute(job, report_progress), timeout=self.config.job_timeout
                )
            except asyncio.TimeoutError:
                raise JobTimedOut(self.config.job_timeout) from None

            if job.kind == JobKind.VIDEO and not _is_valid_video_result(result):
                raise UpstreamMalformedResponse("Video processing did not return valid result")

            job.result = result
            job.completed_at = utcnow()
            job.status = JobStatus.COMPLETED
            if job.resource_key:
                self.dedup.mark_processed(job.resource_key)
            succeeded = True
            state.history.add(job)
            self.events.publish(JobCompleted(lane=state.name, job_id=job.id, result=result))
            log.info("%s job %d completed", state.name, job.id)

        except Exception as e:
            log.warning("%s job %d failed: %s", state.name, job.id, e)
            self._handle_failure(state, job, e)

        finally:
            state.active -= 1
            state.lane.release(job.id)
            if job.resource_key and not succeeded:
                self.dedup.release(job.resource_key)

    def _handle_failure(self, state: _LaneState, job: Job, error: Exception) -> None:
        job.attempts += 1
        job.last_error = str(error) or type(error).__name__
        log = job_logger(__name__, state.name, job.id, job.resource_key)

        if self.retry_policy.should_retry(error, job.attempts):
            delay = self.retry_policy.get_delay(job.attempts)
            job.status = JobStatus.QUEUED
            state.retrying[job.id] = job
            task = asyncio.create_task(
                self._requeue_after(state, job, delay), name=f"{state.name}-retry-{job.id}"
            )
            self._retry_tasks.add(task)
            task.add_done_callback(self._retry_tasks.discard)
            log.warning(
                "Retrying job %d in %.1fs (attempt %d/%d)",
                job.id, delay, job.attempts, self.retry_policy.max_attempts,
                extra={"attempts": job.attempts, "delay_s": delay},
            )
            return

        job.status = JobStatus.FAILED
        if job.failed_at is None:
            job.failed_at = utcnow()
        state.history.add(job)
        self.events.publish(
            JobFailed(lane=state.name, job_id=job.id, error=job.last_error, attempts=job.attempts)
        )
        log.error(
            "Job %d failed permanently after %d attempt(s): %s",
            job.id, job.attempts, job.last_error,
            extra={"attempts": job.attempts},
        )

    async def _requeue_after(self, state: _LaneState, job: Job, delay: float) -> None:
        await asyncio.sleep(delay)
        state.retrying.pop(job.id, None)
        state.lane.requeue(job)

    def _lane_state(self, lane: Union[str, JobKind]) -> _LaneState:
        try:
            return self._lanes[JobKind(lane)]
        except ValueError:
            raise UnknownLane(str(lane)) from None


def _is_valid_video_result(result: Any) -> bool:
    return (
        isinstance(result, dict)
        and bool(result.get("video_id"))
        and result.get("status") == "completed"
    )
