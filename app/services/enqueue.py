"""
Enqueue Service
Accepts an appraisal request, records it as pending and hands it to the
background scheduler without waiting for processing.
"""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import PersistenceError, SchedulingError
from app.models.job import AppraisalJob
from app.schemas.job import JobStatus
from app.services.validation import validate_image_references

logger = logging.getLogger(__name__)


async def enqueue_appraisal(
    db: Session,
    scheduler,
    user_id: str,
    image_urls: Any,
    condition: Optional[str] = None,
) -> AppraisalJob:
    """
    Create a pending job and submit it for background processing.

    Raises:
        ValidationError: empty or untrusted image references (nothing is stored)
        PersistenceError: the insert failed
        SchedulingError: the handoff failed (the inserted row is removed)
    """
    image_urls = validate_image_references(image_urls)
    condition = (condition or "").strip() or settings.DEFAULT_CONDITION

    job = AppraisalJob(
        user_id=user_id,
        image_urls=image_urls,
        condition=condition,
        status=JobStatus.PENDING.value,
    )
    try:
        db.add(job)
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Queue insert failed for user {user_id}: {e}")
        raise PersistenceError("Failed to queue appraisal", cause=e) from e

    logger.info(f"Job {job.id} queued ({len(image_urls)} image(s), condition={condition!r})")

    try:
        await scheduler.submit(job.id)
    except Exception as e:
        logger.exception(f"Handoff failed for job {job.id}, discarding it")
        try:
            db.delete(job)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            # Left pending; resubmitted on the next startup
            logger.exception(f"Could not discard job {job.id}")
        raise SchedulingError("Failed to queue appraisal", cause=e) from e

    return job
