"""Units of work run by the queue for each job kind."""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict

from qudemo_jobs.db.repository import SupabaseRepository
from qudemo_jobs.jobs.errors import UpstreamMalformedResponse
from qudemo_jobs.jobs.models import Job, QAPayload, VideoPayload, utcnow
from qudemo_jobs.jobs.thumbnails import thumbnail_url
from qudemo_jobs.services.processing_client import ProcessingClient

logger = logging.getLogger(__name__)

# fn(percent, message)
ProgressCallback = Callable[[int, str], None]


class JobExecutor(ABC):
    """Runs one attempt of a job and returns its result."""

    @abstractmethod
    async def execute(self, job: Job, report_progress: ProgressCallback) -> Dict[str, Any]:
        ...


class VideoJobExecutor(JobExecutor):
    """Transcribe/index a video upstream, then record it (and optionally a demo)."""

    def __init__(self, client: ProcessingClient, repository: SupabaseRepository):
        self._client = client
        self._repository = repository

    async def execute(self, job: Job, report_progress: ProgressCallback) -> Dict[str, Any]:
        payload: VideoPayload = job.payload
        video_type = "Loom" if payload.is_loom else "YouTube"

        await self._client.check_health()

        logger.info("Processing video %s", payload.video_url, extra={"job_id": job.id})
        response = await self._client.process_video(
            company_name=payload.company_name,
            video_url=payload.video_url,
            source=payload.source,
            meeting_link=payload.meeting_link,
            build_index=payload.build_index,
        )
        video_id = response.get("video_id")
        if not video_id:
            raise UpstreamMalformedResponse("No video_id returned from processing service")

        report_progress(50, f"{video_type} video processed, updating database...")

        company_id = await self._repository.get_company_id(payload.company_name)
        now = utcnow().isoformat()

        await self._repository.insert_video({
            "id": video_id,
            "company_id": company_id,
            "user_id": payload.user_id,
            "video_url": payload.video_url,
            "transcript_url": None,
            "faiss_index_url": None,
            "video_name": video_id,
            "created_at": now,
        })

        if payload.create_demo:
            await self._repository.insert_demo({
                "id": video_id,
                "title": f"{video_type} Video Demo - {payload.company_name}",
                "description": f"AI-powered {video_type} video demo for {payload.company_name}",
                "video_url": payload.video_url,
                "thumbnail_url": thumbnail_url(payload.video_url),
                "company_id": company_id,
                "created_by": payload.user_id,
                "is_active": True,
                "created_at": now,
                "updated_at": now,
                "video_name": video_id,
            })

        report_progress(100, f"{video_type} video processing completed successfully")
        return {"video_id": video_id, "status": "completed"}


class QAJobExecutor(JobExecutor):
    """Ask the processing service a question and store the answer."""

    def __init__(self, client: ProcessingClient, repository: SupabaseRepository):
        self._client = client
        self._repository = repository

    async def execute(self, job: Job, report_progress: ProgressCallback) -> Dict[str, Any]:
        payload: QAPayload = job.payload

        response = await self._client.ask_question(payload.question, payload.company_name)
        if "answer" not in response:
            raise UpstreamMalformedResponse("No answer returned from processing service")
        answer = response["answer"]
        confidence = response.get("confidence")
        sources = response.get("sources") or []

        report_progress(80, "Answer generated, saving to database...")

        await self._repository.insert_question({
            "id": str(uuid.uuid4()),
            "interaction_id": payload.interaction_id,
            "question": payload.question,
            "answer": answer,
            "confidence": confidence,
            "sources": sources,
            "created_at": utcnow().isoformat(),
        })

        report_progress(100, "Q&A processing completed successfully")
        return {"answer": answer, "confidence": confidence, "sources": sources}
