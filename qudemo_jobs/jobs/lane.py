"""Priority lane: pending jobs bucketed by priority, FIFO within a bucket."""

import itertools
from collections import deque
from typing import Deque, Dict, Optional, Union

from qudemo_jobs.jobs.models import Job, JobKind, JobStatus, Priority, QAPayload, VideoPayload


class PriorityLane:
    """Pending jobs for one logical queue ("video" or "qa").

    Also tracks the ids of jobs currently in flight so that ``counts()``
    can report them; the dispatcher is responsible for marking and
    releasing them.
    """

    def __init__(self, name: str):
        self.name = name
        self._buckets: Dict[Priority, Deque[Job]] = {p: deque() for p in Priority}
        self._ids = itertools.count(1)
        self.processing: Dict[int, Job] = {}

    def enqueue(
        self,
        kind: JobKind,
        payload: Union[VideoPayload, QAPayload],
        priority: int = Priority.MEDIUM,
        resource_key: Optional[str] = None,
    ) -> int:
        """Create a job at the tail of its priority bucket. Returns the new id."""
        job = Job(
            id=next(self._ids),
            kind=kind,
            payload=payload,
            priority=Priority(priority),
            resource_key=resource_key,
        )
        self._buckets[job.priority].append(job)
        return job.id

    def requeue(self, job: Job) -> None:
        """Put an existing job back at the tail of its bucket, keeping its id."""
        job.status = JobStatus.QUEUED
        self._buckets[job.priority].append(job)

    def dequeue_next(self) -> Optional[Job]:
        for priority in Priority:
            bucket = self._buckets[priority]
            if bucket:
                return bucket.popleft()
        return None

    def find_by_id(self, job_id: int) -> Optional[Job]:
        for bucket in self._buckets.values():
            for job in bucket:
                if job.id == job_id:
                    return job
        return None

    def remove(self, job_id: int) -> Optional[Job]:
        for bucket in self._buckets.values():
            for job in bucket:
                if job.id == job_id:
                    bucket.remove(job)
                    return job
        return None

    def mark_processing(self, job: Job) -> None:
        self.processing[job.id] = job

    def release(self, job_id: int) -> None:
        self.processing.pop(job_id, None)

    def counts(self) -> Dict[str, int]:
        waiting = sum(len(bucket) for bucket in self._buckets.values())
        processing = len(self.processing)
        return {
            "waiting": waiting,
            "processing": processing,
            "total": waiting + processing,
        }

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())
