"""
Appraisal Pipeline Worker
Advances one queued job to a terminal state:

    1. claim (pending -> processing)
    2. fetch input images
    3. AI valuation                      (fatal on failure)
    4. AI image regeneration + upload    (falls back to the first input image)
    5. persist valuation record and complete the job in one transaction
    6. publish ``valuation.completed``   (streak update; failures only logged)

Any fatal error ends in a single ``failed`` write carrying the error message.
There are no retries; a failed job stays failed.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.core.database import SessionLocal
from app.core.exceptions import PersistenceError, RegenerationError, StorageUploadError
from app.models.job import AppraisalJob
from app.schemas.appraisal import AppraisalResult
from app.schemas.job import JobStatus
from app.services.events import EventBus, VALUATION_COMPLETED
from app.services.gemini_appraisal import GeminiAppraisalService
from app.services.image_fetch import FetchedImage, ImageFetcher
from app.services.recorder import write_appraisal
from app.services.storage import StorageService, build_result_path
from app.services.streak import StreakSubscriber
from app.workers.base import BaseWorker

logger = logging.getLogger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000


@dataclass
class ClaimedJob:
    """Snapshot of the fields the pipeline needs, taken at claim time."""
    id: str
    user_id: str
    image_urls: List[str]
    condition: str


class AppraisalWorker(BaseWorker):
    """Single-pass executor for one appraisal job."""

    TASK_NAME = "appraisal"
    STAGE_COUNT = 6

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        fetcher: Optional[ImageFetcher] = None,
        appraiser: Optional[GeminiAppraisalService] = None,
        storage_service: Optional[StorageService] = None,
        event_bus: Optional[EventBus] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory or SessionLocal
        self.fetcher = fetcher or ImageFetcher()
        self.appraiser = appraiser or GeminiAppraisalService()
        self.storage = storage_service
        self.event_bus = event_bus or EventBus()
        self.clock = clock or datetime.utcnow

    # ------------------------------------------------------------------
    # Job row transitions (blocking; called through asyncio.to_thread)
    # ------------------------------------------------------------------

    def _claim(self, job_id: str) -> Optional[ClaimedJob]:
        """pending -> processing. None when the job is missing or already claimed."""
        db = self.session_factory()
        try:
            now = self.clock()
            claimed = (
                db.query(AppraisalJob)
                .filter(AppraisalJob.id == job_id, AppraisalJob.status == JobStatus.PENDING.value)
                .update(
                    {
                        AppraisalJob.status: JobStatus.PROCESSING.value,
                        AppraisalJob.started_at: now,
                        AppraisalJob.heartbeat_at: now,
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
            if not claimed:
                return None
            job = db.query(AppraisalJob).filter(AppraisalJob.id == job_id).one()
            return ClaimedJob(
                id=job.id,
                user_id=job.user_id,
                image_urls=list(job.image_urls or []),
                condition=job.condition,
            )
        finally:
            db.close()

    def _heartbeat(self, job_id: str) -> None:
        db = self.session_factory()
        try:
            (
                db.query(AppraisalJob)
                .filter(AppraisalJob.id == job_id, AppraisalJob.status == JobStatus.PROCESSING.value)
                .update({AppraisalJob.heartbeat_at: self.clock()}, synchronize_session=False)
            )
            db.commit()
        finally:
            db.close()

    def _persist_and_complete(self, job: ClaimedJob, result: AppraisalResult, image_url: str) -> str:
        """Write the valuation record and mark the job completed atomically."""
        db = self.session_factory()
        try:
            appraisal = write_appraisal(db, job.user_id, result, image_url, job.image_urls, commit=False)
            completed = (
                db.query(AppraisalJob)
                .filter(AppraisalJob.id == job.id, AppraisalJob.status == JobStatus.PROCESSING.value)
                .update(
                    {
                        AppraisalJob.status: JobStatus.COMPLETED.value,
                        AppraisalJob.result: result.summary().model_dump(by_alias=True),
                        AppraisalJob.appraisal_id: appraisal.id,
                        AppraisalJob.completed_at: self.clock(),
                    },
                    synchronize_session=False,
                )
            )
            if not completed:
                db.rollback()
                raise PersistenceError("Job is no longer processing; appraisal discarded")
            db.commit()
            return appraisal.id
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to save appraisal: {e}", cause=e) from e
        finally:
            db.close()

    def _mark_failed(self, job_id: str, message: str) -> bool:
        db = self.session_factory()
        try:
            failed = (
                db.query(AppraisalJob)
                .filter(AppraisalJob.id == job_id, AppraisalJob.status == JobStatus.PROCESSING.value)
                .update(
                    {
                        AppraisalJob.status: JobStatus.FAILED.value,
                        AppraisalJob.error_message: message[:MAX_ERROR_MESSAGE_LENGTH],
                        AppraisalJob.completed_at: self.clock(),
                    },
                    synchronize_session=False,
                )
            )
            db.commit()
            return bool(failed)
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _get_storage(self) -> StorageService:
        if self.storage is None:
            try:
                self.storage = StorageService()
            except Exception as e:
                raise StorageUploadError(f"Storage unavailable: {e}", cause=e) from e
        return self.storage

    async def _canonical_image(self, job: ClaimedJob, images: List[FetchedImage]) -> str:
        """Regenerated image URL, or the first input reference on any failure."""
        fallback = job.image_urls[0]
        try:
            generated = await self.appraiser.regenerate_image(images)
        except RegenerationError as e:
            logger.warning(f"Job {job.id}: {e}; using original image")
            return fallback

        try:
            storage = self._get_storage()
            path = build_result_path(job.user_id, generated.extension)
            return await storage.upload_bytes(generated.data, path, generated.mime_type)
        except StorageUploadError as e:
            logger.warning(f"Job {job.id}: {e}; using original image")
            return fallback

    async def execute(self, job_id: str) -> Optional[JobStatus]:
        """
        Run the pipeline for ``job_id``.

        Returns:
            The terminal status written, or None if the job could not be claimed
        """
        job = await asyncio.to_thread(self._claim, job_id)
        if job is None:
            logger.warning(f"Job {job_id} not found or already claimed, skipping")
            return None

        started = self._log_start(job.id, user_id=job.user_id, images=len(job.image_urls), condition=job.condition)
        self._log_stage(job.id, 1, "claimed")

        try:
            self._log_stage(job.id, 2, f"fetching {len(job.image_urls)} image(s)")
            images = await self.fetcher.fetch_all(job.image_urls)
            await asyncio.to_thread(self._heartbeat, job.id)

            self._log_stage(job.id, 3, "requesting valuation")
            result = await self.appraiser.appraise(images, job.condition)
            await asyncio.to_thread(self._heartbeat, job.id)

            self._log_stage(job.id, 4, "regenerating image")
            image_url = await self._canonical_image(job, images)
            await asyncio.to_thread(self._heartbeat, job.id)

            self._log_stage(job.id, 5, "saving appraisal")
            appraisal_id = await asyncio.to_thread(self._persist_and_complete, job, result, image_url)
        except Exception as e:
            self._log_error(job.id, started, e)
            message = str(e) or type(e).__name__
            try:
                await asyncio.to_thread(self._mark_failed, job.id, message)
            except Exception:
                logger.exception(f"Could not record failure for job {job.id}")
            return JobStatus.FAILED

        self._log_stage(job.id, 6, f"publishing {VALUATION_COMPLETED}")
        await self.event_bus.publish(VALUATION_COMPLETED, {
            "job_id": job.id,
            "user_id": job.user_id,
            "appraisal_id": appraisal_id,
            "item_name": result.item_name,
        })

        self._log_complete(job.id, started, f"appraisal {appraisal_id} ({result.item_name})")
        return JobStatus.COMPLETED


def build_event_bus(session_factory: Optional[sessionmaker] = None) -> EventBus:
    """Event bus with the default subscribers registered."""
    bus = EventBus()
    StreakSubscriber(session_factory or SessionLocal).register(bus)
    return bus


@lru_cache()
def get_appraisal_worker() -> AppraisalWorker:
    """Process-wide worker wired to the real collaborators."""
    return AppraisalWorker(event_bus=build_event_bus())


async def run_appraisal_pipeline(job_id: str) -> Optional[JobStatus]:
    """Scheduler entry point."""
    return await get_appraisal_worker().execute(job_id)


__all__ = [
    "AppraisalWorker",
    "ClaimedJob",
    "build_event_bus",
    "get_appraisal_worker",
    "run_appraisal_pipeline",
]
