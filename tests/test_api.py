"""Tests for the queue management API."""

import asyncio
import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import ScriptedExecutor, qa_payload, video_payload
from qudemo_jobs.api.v1 import queue as queue_api
from qudemo_jobs.api.v1.router import v1_router
from qudemo_jobs.jobs.in_process_queue import InProcessQueue
from qudemo_jobs.jobs.models import JobKind


@pytest.fixture
def job_queue():
    queue = InProcessQueue({JobKind.VIDEO: ScriptedExecutor(), JobKind.QA: ScriptedExecutor()})
    queue_api.set_queue(queue)
    queue_api.set_processing_client(None)
    yield queue
    queue_api.set_queue(None)


@pytest.fixture
def client(job_queue):
    app = FastAPI()
    app.include_router(v1_router)
    return TestClient(app)


def test_status_includes_lanes_dedup_and_memory(client, job_queue):
    asyncio.run(job_queue.enqueue_video(video_payload()))

    response = client.get("/api/v1/queue/status")

    assert response.status_code == 200
    body = response.json()
    assert body["video"]["waiting"] == 1
    assert body["qa"]["max_concurrent"] == 10
    assert body["processing_resource_keys"] == ["https://youtu.be/dQw4w9WgXcQ_acme"]
    assert body["memory"]["memory_mb"] > 0


def test_job_details(client, job_queue):
    job_id = asyncio.run(job_queue.enqueue_qa(qa_payload()))

    response = client.get(f"/api/v1/queue/jobs/qa/{job_id}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == job_id
    assert body["status"] == "queued"
    assert body["attempts"] == 0
    assert body["payload"]["question"] == "How do I export?"


def test_job_details_errors(client):
    assert client.get("/api/v1/queue/jobs/audio/1").status_code == 400
    assert client.get("/api/v1/queue/jobs/qa/42").status_code == 404


def test_clear_cache_and_clear_video(client, job_queue):
    asyncio.run(job_queue.enqueue_video(video_payload()))
    asyncio.run(job_queue.enqueue_video(video_payload(url="https://youtu.be/other")))

    response = client.post(
        "/api/v1/queue/clear-video",
        json={"video_url": "https://youtu.be/other", "company_name": "acme"},
    )
    assert response.status_code == 200
    assert response.json()["resource_key"] == "https://youtu.be/other_acme"
    assert job_queue.get_queue_status().processing_resource_keys == [
        "https://youtu.be/dQw4w9WgXcQ_acme"
    ]

    assert client.post("/api/v1/queue/clear-cache").status_code == 200
    assert job_queue.get_queue_status().processing_resource_keys == []


def test_health_and_metrics(client):
    health = client.get("/api/v1/queue/health").json()
    assert health["status"] in ("healthy", "warning")

    metrics = client.get("/api/v1/queue/metrics/video")
    assert metrics.status_code == 200
    assert metrics.json()["queue"]["max_concurrent"] == 2
    assert client.get("/api/v1/queue/metrics/nope").status_code == 400


def test_monitor_logs_and_returns_report(client, job_queue, caplog):
    asyncio.run(job_queue.enqueue_video(video_payload()))

    with caplog.at_level(logging.INFO, logger="qudemo_jobs.api.v1.queue"):
        response = client.get("/api/v1/queue/monitor")

    assert response.status_code == 200
    body = response.json()
    assert body["queue"]["video"]["waiting"] == 1
    assert body["queue"]["qa"]["max_concurrent"] == 10
    assert "rss_mb" in body["memory"]
    assert "Queue video: waiting=1" in caplog.text
    assert "Memory: rss=" in caplog.text


def test_service_health(client):
    assert client.get("/api/v1/health").json()["status"] == "healthy"


def test_uninitialized_queue_returns_503():
    queue_api.set_queue(None)
    app = FastAPI()
    app.include_router(v1_router)

    assert TestClient(app).get("/api/v1/queue/status").status_code == 503
