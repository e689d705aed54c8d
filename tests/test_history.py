"""Tests for bounded job history."""

from qudemo_jobs.jobs.history import JobHistory
from qudemo_jobs.jobs.models import Job, JobKind, JobStatus, QAPayload


def _job(job_id: int, status: JobStatus) -> Job:
    return Job(
        id=job_id,
        kind=JobKind.QA,
        payload=QAPayload(question="q", company_name="acme"),
        status=status,
    )


def test_oldest_jobs_evicted_past_limit():
    history = JobHistory(limit=2)
    for job_id in (1, 2, 3):
        history.add(_job(job_id, JobStatus.COMPLETED))

    assert history.get(1) is None
    assert history.get(2).id == 2
    assert history.get(3).id == 3
    assert len(history) == 2


def test_totals_survive_eviction():
    history = JobHistory(limit=1)
    history.add(_job(1, JobStatus.COMPLETED))
    history.add(_job(2, JobStatus.FAILED))
    history.add(_job(3, JobStatus.COMPLETED))

    assert history.counts() == {"completed": 2, "failed": 1}
