"""
Queue API Routes
Submits appraisals for background processing and reports their progress.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_scheduler
from app.schemas.job import EnqueueRequest, EnqueueResponse, JobRecord, JobStatus, QueueStatusResponse
from app.services.auth import CallerIdentity
from app.services.enqueue import enqueue_appraisal
from app.services.status import get_job, get_queue_status
from app.workers.scheduler import BackgroundTaskScheduler

router = APIRouter()


@router.post("/add", response_model=EnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def add_to_queue(
    request: EnqueueRequest,
    user: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
    scheduler: BackgroundTaskScheduler = Depends(get_scheduler),
):
    """
    Queue an appraisal.

    Returns as soon as the job is recorded; processing happens in the
    background and is observed through GET /queue/status.
    """
    job = await enqueue_appraisal(
        db,
        scheduler,
        user_id=user.user_id,
        image_urls=request.image_references,
        condition=request.condition,
    )
    return EnqueueResponse(
        job_id=job.id,
        status=JobStatus.PENDING,
        message="Appraisal queued for processing",
    )


@router.get("/status", response_model=QueueStatusResponse)
def queue_status(
    user: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Caller's jobs from the last 24 hours with stats and newly completed items."""
    return get_queue_status(db, user.user_id)


@router.get("/{job_id}", response_model=JobRecord)
def get_job_status(
    job_id: str,
    user: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get one job of the caller."""
    return get_job(db, user.user_id, job_id)
