# Workers package - background appraisal processing (in-process or RQ)

from app.workers.base import BaseWorker
from app.workers.appraisal import (
    AppraisalWorker,
    build_event_bus,
    get_appraisal_worker,
    run_appraisal_pipeline
)
from app.workers.scheduler import (
    BackgroundTaskScheduler,
    InProcessScheduler,
    RQScheduler,
    build_scheduler
)
from app.workers.reaper import StaleJobReaper, reap_stale_jobs, resubmit_pending_jobs
from app.workers.tasks import run_appraisal_task

__all__ = [
    # Base
    "BaseWorker",
    # Pipeline
    "AppraisalWorker",
    "build_event_bus",
    "get_appraisal_worker",
    "run_appraisal_pipeline",
    # Scheduling
    "BackgroundTaskScheduler",
    "InProcessScheduler",
    "RQScheduler",
    "build_scheduler",
    # Recovery
    "StaleJobReaper",
    "reap_stale_jobs",
    "resubmit_pending_jobs",
    # Tasks
    "run_appraisal_task"
]
