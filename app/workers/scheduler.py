"""
Background Task Schedulers
Hands accepted jobs to the pipeline without blocking the request.

- InProcessScheduler: one detached asyncio task per job on the serving
  event loop, concurrency bounded by a semaphore.
- RQScheduler: enqueues onto Redis; consumed by scripts/run_workers.py.

The enqueue path depends only on BackgroundTaskScheduler.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Set

from app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

JobRunner = Callable[[str], Awaitable[Any]]


class BackgroundTaskScheduler(ABC):
    """Abstract interface for job scheduling (in-process or durable queue)."""

    @abstractmethod
    async def submit(self, job_id: str) -> Any:
        """Hand ``job_id`` to the pipeline. Returns a backend-specific handle."""
        ...

    async def start(self) -> None:
        """Start the scheduler."""

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""


class InProcessScheduler(BackgroundTaskScheduler):
    """Fire-and-forget asyncio tasks. Nothing survives a process restart."""

    def __init__(self, runner: JobRunner, max_concurrency: int = 4):
        self._runner = runner
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        # Strong references; the loop only keeps weak ones to tasks
        self._tasks: Set[asyncio.Task] = set()
        self._accepting = True

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def submit(self, job_id: str) -> asyncio.Task:
        if not self._accepting:
            raise RuntimeError("Scheduler is shutting down")
        task = asyncio.create_task(self._run(job_id), name=f"appraisal-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Scheduled job {job_id} ({self.in_flight} in flight)")
        return task

    async def _run(self, job_id: str) -> None:
        async with self._semaphore:
            try:
                await self._runner(job_id)
            except Exception:
                # The runner owns terminal-state writes; this only guards the loop
                logger.exception(f"Unhandled error while running job {job_id}")

    async def join(self) -> None:
        """Wait until every submitted task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def start(self) -> None:
        self._accepting = True

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting work and wait up to ``timeout`` for in-flight jobs.

        Jobs still running afterwards are abandoned, not cancelled; their
        rows stay in ``processing`` until the reaper expires the lease.
        """
        self._accepting = False
        if not self._tasks:
            return
        done, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"Shutting down with {len(pending)} job(s) still running")


class RQScheduler(BackgroundTaskScheduler):
    """Enqueues each job onto the RQ ``appraisal`` queue."""

    def __init__(self, connection=None, job_timeout: Optional[int] = None):
        from rq import Queue
        from app.core.redis import Queues, get_redis

        self.queue = Queue(
            name=Queues.APPRAISAL,
            connection=connection or get_redis(),
            default_timeout=job_timeout or default_settings.JOB_TIMEOUT_APPRAISAL,
        )
        self.job_timeout = job_timeout or default_settings.JOB_TIMEOUT_APPRAISAL

    async def submit(self, job_id: str) -> Any:
        from app.workers.tasks import run_appraisal_task

        rq_job = await asyncio.to_thread(
            self.queue.enqueue_call,
            func=run_appraisal_task,
            args=(job_id,),
            timeout=self.job_timeout,
            job_id=f"appraisal_{job_id}",
            meta={
                "type": "appraisal",
                "created_at": datetime.utcnow().isoformat(),
            },
        )
        logger.info(f"Enqueued appraisal job: {job_id}")
        return rq_job


def build_scheduler(config: Optional[Settings] = None, runner: Optional[JobRunner] = None) -> BackgroundTaskScheduler:
    """Select the scheduler backend from SCHEDULER_BACKEND."""
    config = config or default_settings
    backend = config.SCHEDULER_BACKEND.lower()

    if backend == "rq":
        return RQScheduler(job_timeout=config.JOB_TIMEOUT_APPRAISAL)
    if backend == "inprocess":
        if runner is None:
            from app.workers.appraisal import run_appraisal_pipeline
            runner = run_appraisal_pipeline
        return InProcessScheduler(runner, max_concurrency=config.MAX_CONCURRENT_JOBS)
    raise ValueError(f"Unknown scheduler backend: {config.SCHEDULER_BACKEND}")


__all__ = [
    "BackgroundTaskScheduler",
    "InProcessScheduler",
    "RQScheduler",
    "build_scheduler",
]
