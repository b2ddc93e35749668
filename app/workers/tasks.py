"""
RQ Task Definitions
Entry points executed by RQ worker processes.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def _run_async(coro):
    """Helper to run async code in sync context (for RQ)."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            raise RuntimeError("event loop is closed")
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def run_appraisal_task(job_id: str) -> Optional[str]:
    """
    RQ task for the appraisal pipeline. Not retried: the pipeline records
    its own terminal state, and a failed job stays failed.

    Returns:
        Terminal status value, or None if the job was not claimable
    """
    from app.workers.appraisal import run_appraisal_pipeline

    logger.info(f"[Task] Starting appraisal: {job_id}")
    status = _run_async(run_appraisal_pipeline(job_id))
    return status.value if status else None
