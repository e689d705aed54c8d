"""Job record data model for the video and Q&A lanes."""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobKind(str, Enum):
    VIDEO = "video"
    QA = "qa"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Priority(IntEnum):
    """Lower value is served first."""
    HIGH = 1
    MEDIUM = 2
    LOW = 3


class VideoPayload(BaseModel):
    video_url: str
    company_name: str
    company_id: Optional[str] = None
    user_id: Optional[str] = None
    source: Optional[str] = None
    meeting_link: Optional[str] = None
    is_loom: bool = False
    create_demo: bool = False
    build_index: Optional[bool] = None

    @property
    def company_identifier(self) -> str:
        return self.company_id or self.company_name

    @property
    def resource_key(self) -> str:
        return f"{self.video_url}_{self.company_identifier}"


class QAPayload(BaseModel):
    question: str
    company_name: str
    interaction_id: Optional[str] = None
    user_id: Optional[str] = None


class Job(BaseModel):
    """Tracks the lifecycle of one queued unit of work."""
    id: int
    kind: JobKind
    payload: Union[VideoPayload, QAPayload]
    priority: Priority = Priority.MEDIUM
    status: JobStatus = JobStatus.QUEUED
    attempts: int = 0
    progress: int = 0
    progress_message: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    resource_key: Optional[str] = None


class LaneStatus(BaseModel):
    waiting: int
    processing: int
    active: int
    total: int
    completed: int
    failed: int
    max_concurrent: int


class QueueStatus(BaseModel):
    video: LaneStatus
    qa: LaneStatus
    processed_resource_keys: List[str] = Field(default_factory=list)
    processing_resource_keys: List[str] = Field(default_factory=list)
