"""
Stale Job Recovery
Fails ``processing`` jobs whose lease expired and resubmits ``pending`` jobs
left without a runner, so a crash or restart never leaves a job stuck
forever. The reaper runs as a periodic task in the API process; pending jobs
are resubmitted once at startup.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.core.database import SessionLocal
from app.models.job import AppraisalJob
from app.schemas.job import JobStatus

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Processing timed out"


def reap_stale_jobs(db: Session, now: datetime, lease_seconds: int) -> int:
    """
    Mark every processing job whose last heartbeat (or start time) is older
    than ``lease_seconds`` as failed.

    Returns:
        Number of jobs failed
    """
    cutoff = now - timedelta(seconds=lease_seconds)
    last_seen = func.coalesce(AppraisalJob.heartbeat_at, AppraisalJob.started_at, AppraisalJob.created_at)
    reaped = (
        db.query(AppraisalJob)
        .filter(AppraisalJob.status == JobStatus.PROCESSING.value, last_seen < cutoff)
        .update(
            {
                AppraisalJob.status: JobStatus.FAILED.value,
                AppraisalJob.error_message: TIMEOUT_MESSAGE,
                AppraisalJob.completed_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if reaped:
        logger.warning(f"Reaped {reaped} stale processing job(s)")
    return reaped


def find_orphaned_jobs(db: Session, created_before: datetime) -> List[str]:
    """Ids of pending jobs created before ``created_before``, oldest first."""
    rows = (
        db.query(AppraisalJob.id)
        .filter(AppraisalJob.status == JobStatus.PENDING.value, AppraisalJob.created_at < created_before)
        .order_by(AppraisalJob.created_at.asc())
        .all()
    )
    return [row.id for row in rows]


async def resubmit_pending_jobs(
    scheduler,
    session_factory: Optional[sessionmaker] = None,
    created_before: Optional[datetime] = None,
) -> int:
    """
    Hand every orphaned pending job back to ``scheduler``.

    Jobs queued in memory by a previous process, or whose discard failed
    after a rejected handoff, have no runner until this is called. A job
    that is still queued elsewhere is harmless to resubmit; the pipeline
    claim only succeeds once.

    Returns:
        Number of jobs resubmitted
    """
    session_factory = session_factory or SessionLocal
    created_before = created_before or datetime.utcnow()

    def _find() -> List[str]:
        db = session_factory()
        try:
            return find_orphaned_jobs(db, created_before)
        finally:
            db.close()

    job_ids = await asyncio.to_thread(_find)
    resubmitted = 0
    for job_id in job_ids:
        try:
            await scheduler.submit(job_id)
            resubmitted += 1
        except Exception:
            logger.exception(f"Could not resubmit pending job {job_id}")
    if job_ids:
        logger.warning(f"Resubmitted {resubmitted}/{len(job_ids)} orphaned pending job(s)")
    return resubmitted


class StaleJobReaper:
    """Background loop calling reap_stale_jobs every ``interval_seconds``."""

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        lease_seconds: Optional[int] = None,
        interval_seconds: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory or SessionLocal
        self.lease_seconds = lease_seconds or settings.JOB_LEASE_SECONDS
        self.interval_seconds = interval_seconds or settings.REAPER_INTERVAL_SECONDS
        self.clock = clock or datetime.utcnow
        self._task: Optional[asyncio.Task] = None

    def _reap(self) -> int:
        db = self.session_factory()
        try:
            return reap_stale_jobs(db, self.clock(), self.lease_seconds)
        finally:
            db.close()

    async def reap_once(self) -> int:
        return await asyncio.to_thread(self._reap)

    async def _run(self):
        while True:
            try:
                await self.reap_once()
            except Exception:
                logger.exception("Stale job reaper pass failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="stale-job-reaper")
            logger.info(
                f"Stale job reaper started (lease {self.lease_seconds}s, every {self.interval_seconds}s)"
            )

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
