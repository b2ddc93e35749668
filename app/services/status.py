"""
Queue Status Service
Read-only view of a user's recent jobs for client polling.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.models.job import AppraisalJob
from app.schemas.job import (
    JobRecord,
    JobStatus,
    NewlyCompletedItem,
    QueueStats,
    QueueStatusResponse,
)


def compute_stats(records: Iterable[JobRecord]) -> QueueStats:
    """Per-status counts; total is always the sum of the four buckets."""
    stats = QueueStats()
    for record in records:
        if record.status == JobStatus.PENDING:
            stats.pending += 1
        elif record.status == JobStatus.PROCESSING:
            stats.processing += 1
        elif record.status == JobStatus.COMPLETED:
            stats.completed += 1
        elif record.status == JobStatus.FAILED:
            stats.failed += 1
    stats.total = stats.pending + stats.processing + stats.completed + stats.failed
    return stats


def select_newly_completed(
    records: Iterable[JobRecord],
    now: datetime,
    window_seconds: float,
) -> List[NewlyCompletedItem]:
    """Completed jobs whose completedAt falls inside the trailing window."""
    cutoff = now - timedelta(seconds=window_seconds)
    newly_completed = []
    for record in records:
        if record.status != JobStatus.COMPLETED or record.completed_at is None:
            continue
        if not (cutoff < record.completed_at <= now):
            continue
        result = record.result
        newly_completed.append(NewlyCompletedItem(
            job_id=record.id,
            record_id=record.record_id,
            item_name=result.item_name if result else None,
            value=(result.price_range.low + result.price_range.high) / 2 if result else 0,
            currency=result.currency if result else "USD",
        ))
    return newly_completed


def get_queue_status(
    db: Session,
    user_id: str,
    now: Optional[datetime] = None,
    lookback_hours: Optional[float] = None,
    window_seconds: Optional[float] = None,
) -> QueueStatusResponse:
    """
    Summarize the caller's jobs created within the lookback window.

    Returns items newest first, per-status stats, and the
    newly-completed subset relative to ``now``.
    """
    now = now or datetime.utcnow()
    lookback = lookback_hours if lookback_hours is not None else settings.STATUS_LOOKBACK_HOURS
    window = window_seconds if window_seconds is not None else settings.NEWLY_COMPLETED_WINDOW_SECONDS

    since = now - timedelta(hours=lookback)
    jobs = (
        db.query(AppraisalJob)
        .filter(AppraisalJob.user_id == user_id)
        .filter(AppraisalJob.created_at >= since)
        .order_by(AppraisalJob.created_at.desc())
        .all()
    )
    records = [JobRecord.from_job(job) for job in jobs]

    return QueueStatusResponse(
        items=records,
        stats=compute_stats(records),
        newly_completed=select_newly_completed(records, now, window),
    )


def get_job(db: Session, user_id: str, job_id: str) -> JobRecord:
    """One job owned by the caller."""
    job = (
        db.query(AppraisalJob)
        .filter(AppraisalJob.id == job_id, AppraisalJob.user_id == user_id)
        .first()
    )
    if job is None:
        raise NotFoundError("Job not found", details={"job_id": job_id})
    return JobRecord.from_job(job)
