"""
Base Worker Classes
Timing and structured stage logging shared by background workers.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Abstract base class for background workers.

    Subclasses set TASK_NAME and STAGE_COUNT and call the _log_* helpers
    around their stages so every job produces the same log trail. One
    instance may run many jobs concurrently, so timing is passed around
    rather than kept on the instance.
    """

    TASK_NAME = "task"
    STAGE_COUNT = 1

    @staticmethod
    def _elapsed(started: datetime) -> float:
        return (datetime.utcnow() - started).total_seconds()

    def _log_start(self, job_id: str, **context) -> datetime:
        """Log task start with context and return the start time."""
        logger.info(f"[START] {self.TASK_NAME} {job_id} | Context: {context}")
        return datetime.utcnow()

    def _log_stage(self, job_id: str, stage: int, message: str):
        logger.info(f"  [{stage}/{self.STAGE_COUNT}] {job_id}: {message}")

    def _log_complete(self, job_id: str, started: datetime, result_summary: str = ""):
        """Log task completion with timing."""
        logger.info(
            f"[COMPLETE] {self.TASK_NAME} {job_id} | Duration: {self._elapsed(started):.2f}s | {result_summary}"
        )

    def _log_error(self, job_id: str, started: datetime, error: Exception):
        """Log task error with details."""
        logger.error(
            f"[ERROR] {self.TASK_NAME} {job_id} | Duration: {self._elapsed(started):.2f}s | "
            f"{type(error).__name__}: {error}"
        )

    @abstractmethod
    async def execute(self, *args, **kwargs) -> Any:
        """
        Execute the worker task. Must be implemented by subclasses.

        Returns:
            Task result
        """
        pass


__all__ = ["BaseWorker"]
