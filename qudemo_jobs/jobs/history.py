"""Bounded retention of finished jobs for later inspection."""

from collections import OrderedDict
from typing import Dict, Optional

from qudemo_jobs.jobs.models import Job, JobStatus


class JobHistory:
    """Keeps the most recent ``limit`` terminal jobs; oldest evicted first.

    Completed/failed totals count every job ever added, including evicted ones.
    """

    def __init__(self, limit: int = 1000):
        self._limit = max(1, limit)
        self._jobs: "OrderedDict[int, Job]" = OrderedDict()
        self.completed_total = 0
        self.failed_total = 0

    def add(self, job: Job) -> None:
        if job.status == JobStatus.COMPLETED:
            self.completed_total += 1
        else:
            self.failed_total += 1
        self._jobs[job.id] = job
        self._jobs.move_to_end(job.id)
        while len(self._jobs) > self._limit:
            self._jobs.popitem(last=False)

    def get(self, job_id: int) -> Optional[Job]:
        return self._jobs.get(job_id)

    def counts(self) -> Dict[str, int]:
        return {"completed": self.completed_total, "failed": self.failed_total}

    def __len__(self) -> int:
        return len(self._jobs)
