"""
Job Schemas
Pydantic models for queue API requests and responses.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional
from enum import Enum
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    """Job status enum. Transitions: pending -> processing -> completed | failed."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# Rows store naive UTC; JSON output carries the offset
UtcDatetime = Annotated[datetime, PlainSerializer(_as_utc, when_used="json")]


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PriceRange(CamelModel):
    low: float
    high: float


class ValuationSummary(CamelModel):
    """Compact result stored on the job row."""
    item_name: str
    price_range: PriceRange
    currency: str = "USD"


class EnqueueRequest(CamelModel):
    """Schema for a queue submission."""
    # Shape is checked by validate_image_references so errors share one format
    image_references: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices("imageReferences", "imageUrls", "image_references"),
    )
    condition: Optional[str] = None


class EnqueueResponse(CamelModel):
    """Schema for a queue submission acknowledgment."""
    job_id: str
    status: JobStatus
    message: str


class JobRecord(CamelModel):
    """Public view of one appraisal job."""
    id: str
    owner: str
    input_images: List[str]
    condition: str
    status: JobStatus
    created_at: UtcDatetime
    started_at: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None
    result: Optional[ValuationSummary] = None
    record_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_job(cls, job) -> "JobRecord":
        """Build from an AppraisalJob row."""
        return cls(
            id=job.id,
            owner=job.user_id,
            input_images=list(job.image_urls or []),
            condition=job.condition,
            status=JobStatus(job.status),
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            result=ValuationSummary.model_validate(job.result) if job.result else None,
            record_id=job.appraisal_id,
            error_message=job.error_message,
        )


class QueueStats(CamelModel):
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0


class NewlyCompletedItem(CamelModel):
    job_id: str
    record_id: Optional[str] = None
    item_name: Optional[str] = None
    value: float = 0
    currency: str = "USD"


class QueueStatusResponse(CamelModel):
    items: List[JobRecord] = []
    stats: QueueStats = QueueStats()
    newly_completed: List[NewlyCompletedItem] = []
