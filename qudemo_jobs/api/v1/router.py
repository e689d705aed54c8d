"""Aggregate all v1 API routers."""

from fastapi import APIRouter

from qudemo_jobs.api.v1.health import router as health_router
from qudemo_jobs.api.v1.queue import router as queue_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(queue_router, tags=["queue"])
