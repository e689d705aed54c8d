"""Queue management API: status, memory, job lookup and dedup-cache resets."""

import logging
import platform
import time
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from qudemo_jobs.config import settings
from qudemo_jobs.jobs.errors import UnknownLane
from qudemo_jobs.system.memory import memory_usage, upstream_memory_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/queue")

# These will be set by main.py during lifespan
_queue = None
_processing_client = None
_started_at = time.monotonic()


def set_queue(queue):
    global _queue
    _queue = queue


def set_processing_client(client):
    global _processing_client
    _processing_client = client


class ClearVideoRequest(BaseModel):
    video_url: str
    company_name: str


def _require_queue():
    if _queue is None:
        raise HTTPException(status_code=503, detail="Job queue not initialized")
    return _queue


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/status")
async def get_queue_status():
    """Lane depths, active counts and dedup state, plus upstream memory."""
    queue = _require_queue()
    memory = await upstream_memory_status(_processing_client)
    return {
        **queue.get_queue_status().model_dump(),
        "memory": memory,
        "timestamp": _now(),
    }


@router.get("/health")
async def get_queue_health():
    queue = _require_queue()
    memory = await upstream_memory_status(_processing_client)
    healthy = memory["memory_mb"] < settings.memory_threshold_mb
    return {
        "status": "healthy" if healthy else "warning",
        "queue_status": queue.get_queue_status().model_dump(),
        "memory": memory,
        "timestamp": _now(),
    }


@router.get("/memory")
async def get_memory_status():
    memory = await upstream_memory_status(_processing_client)
    return {**memory, "timestamp": _now()}


@router.get("/monitor")
async def monitor_queues():
    """Log a lane and memory report, and return it."""
    queue = _require_queue()
    status = queue.get_queue_status()
    memory = memory_usage()
    for name, lane in (("video", status.video), ("qa", status.qa)):
        logger.info(
            "Queue %s: waiting=%d processing=%d active=%d/%d total=%d",
            name, lane.waiting, lane.processing, lane.active, lane.max_concurrent, lane.total,
        )
    logger.info(
        "Memory: rss=%dMB vms=%dMB system=%.1f%%",
        memory["rss_mb"], memory["vms_mb"], memory["system_percent"],
    )
    return {"queue": status.model_dump(), "memory": memory, "timestamp": _now()}


@router.post("/clear-cache")
async def clear_cache():
    """Forget every processed and in-progress video."""
    queue = _require_queue()
    queue.clear_dedup_cache()
    return {"message": "Cache cleared successfully", "cleared_at": _now()}


@router.post("/clear-video")
async def clear_video(request: ClearVideoRequest):
    """Forget a single video so it can be submitted again."""
    queue = _require_queue()
    resource_key = queue.clear_video(request.video_url, request.company_name)
    return {
        "message": "Video cleared from cache successfully",
        "resource_key": resource_key,
        "cleared_at": _now(),
    }


@router.get("/jobs/{lane}/{job_id}")
async def get_job_details(lane: str, job_id: int):
    queue = _require_queue()
    try:
        job = queue.get_job(job_id, lane)
    except UnknownLane as e:
        raise HTTPException(status_code=400, detail=str(e))
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.model_dump(mode="json")


@router.get("/metrics/{lane}")
async def get_queue_metrics(lane: str):
    queue = _require_queue()
    try:
        lane_status = queue.get_lane_status(lane)
    except UnknownLane as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "queue": lane_status.model_dump(),
        "memory": memory_usage(),
        "performance": {
            "uptime_seconds": round(time.monotonic() - _started_at, 1),
            "python_version": platform.python_version(),
            "platform": platform.platform(),
        },
        "timestamp": _now(),
    }
