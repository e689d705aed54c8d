"""QuDemo job queue service - FastAPI application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from qudemo_jobs.api.v1 import queue as queue_api
from qudemo_jobs.api.v1.health import router as health_root_router
from qudemo_jobs.api.v1.router import v1_router
from qudemo_jobs.config import Settings, settings
from qudemo_jobs.db.repository import SupabaseRepository
from qudemo_jobs.jobs.executors import QAJobExecutor, VideoJobExecutor
from qudemo_jobs.jobs.in_process_queue import InProcessQueue, QueueConfig
from qudemo_jobs.jobs.models import JobKind
from qudemo_jobs.lib.json_logger import setup_logging
from qudemo_jobs.services.processing_client import ProcessingClient

logger = logging.getLogger(__name__)

setup_logging(level=settings.log_level, fmt=settings.log_format)


def build_queue(settings: Settings, client: ProcessingClient) -> InProcessQueue:
    """Wire executors and config into a (not yet started) queue."""
    repository = SupabaseRepository()
    executors = {
        JobKind.VIDEO: VideoJobExecutor(client, repository),
        JobKind.QA: QAJobExecutor(client, repository),
    }
    return InProcessQueue(executors, config=QueueConfig.from_settings(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logger.info("Starting QuDemo job queue service on port %d", settings.port)
    logger.info("Processing service: %s", settings.python_api_base_url)

    client = ProcessingClient.from_settings(settings)
    job_queue = build_queue(settings, client)
    await job_queue.start()

    app.state.job_queue = job_queue
    queue_api.set_queue(job_queue)
    queue_api.set_processing_client(client)

    yield

    logger.info("Shutting down QuDemo job queue service")
    await job_queue.stop()
    await client.aclose()


app = FastAPI(
    title="QuDemo Job Queue",
    description="Priority job queue for video transcription and Q&A processing",
    version="0.1.0",
    lifespan=lifespan,
)

cors_origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints


if __name__ == "__main__":
    uvicorn.run("qudemo_jobs.main:app", host="0.0.0.0", port=settings.port)
