"""Tests for the retry policy and error classification."""

import asyncio

import pytest

from qudemo_jobs.jobs.errors import (
    JobTimedOut,
    PersistenceError,
    RecordNotFound,
    UpstreamMalformedResponse,
    UpstreamRejected,
    UpstreamUnavailable,
    is_retryable,
)
from qudemo_jobs.jobs.retry import RetryPolicy


def test_backoff_doubles_each_attempt():
    policy = RetryPolicy(max_attempts=5, base_delay_seconds=5.0)
    assert [policy.get_delay(n) for n in (1, 2, 3, 4)] == [5.0, 10.0, 20.0, 40.0]


@pytest.mark.parametrize("error", [
    PersistenceError("insert failed"),
    UpstreamUnavailable("down"),
    UpstreamMalformedResponse("no video_id"),
    UpstreamRejected("Video is private", status_code=403),
    RecordNotFound("Company not found: acme"),
])
def test_terminal_errors_are_never_retried(error):
    policy = RetryPolicy(max_attempts=3)
    assert not is_retryable(error)
    assert not policy.should_retry(error, attempts=1)


@pytest.mark.parametrize("error", [JobTimedOut(1.0), RuntimeError("boom"), asyncio.TimeoutError()])
def test_timeouts_and_unclassified_errors_are_retryable(error):
    assert is_retryable(error)


def test_retry_stops_at_attempt_limit():
    policy = RetryPolicy(max_attempts=3)
    error = RuntimeError("flaky")
    assert policy.should_retry(error, attempts=1)
    assert policy.should_retry(error, attempts=2)
    assert not policy.should_retry(error, attempts=3)


def test_persistence_error_message_names_database():
    assert str(PersistenceError("duplicate key")) == "Database error: duplicate key"
