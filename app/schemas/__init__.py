# Pydantic schemas package
from app.schemas.job import (
    JobStatus, PriceRange, ValuationSummary, EnqueueRequest, EnqueueResponse,
    JobRecord, QueueStats, NewlyCompletedItem, QueueStatusResponse
)
from app.schemas.appraisal import Reference, AppraisalResult, AppraisalResponse

__all__ = [
    "JobStatus", "PriceRange", "ValuationSummary", "EnqueueRequest", "EnqueueResponse",
    "JobRecord", "QueueStats", "NewlyCompletedItem", "QueueStatusResponse",
    "Reference", "AppraisalResult", "AppraisalResponse",
]
