"""
Queue Poller
Client-side companion to the queue API: submits appraisals and polls
GET /queue/status until the caller's jobs settle.

Usage:
    async with httpx.AsyncClient(base_url="https://api.example.com") as http:
        poller = QueuePoller(http, token, on_item_complete=notify)
        await poller.add_to_queue([url], condition="Good")
        await poller.run()
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

import httpx
from pydantic import ValidationError as SchemaError

from app.core.exceptions import (
    AppraisalError,
    AuthError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from app.schemas.job import (
    EnqueueResponse,
    JobRecord,
    NewlyCompletedItem,
    QueueStats,
    QueueStatusResponse,
)

logger = logging.getLogger(__name__)

ADD_PATH = "/api/v1/queue/add"
STATUS_PATH = "/api/v1/queue/status"

ERRORS_BY_STATUS = {
    400: ValidationError,
    401: AuthError,
    404: NotFoundError,
    503: SchedulingError,
}

CompletionCallback = Callable[[NewlyCompletedItem], Union[None, Awaitable[None]]]


def _raise_for_error(response: httpx.Response):
    """Map an error response from the queue API back onto the exception hierarchy."""
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = body.get("message") or f"Queue API returned {response.status_code}"
    error_cls = ERRORS_BY_STATUS.get(response.status_code, AppraisalError)
    raise error_cls(message, details={"status_code": response.status_code})


class QueuePoller:
    """Mirrors the caller's queue and reports each completion exactly once."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        on_item_complete: Optional[CompletionCallback] = None,
        poll_interval: float = 3.0,
        grace_period: float = 10.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.token = token
        self.on_item_complete = on_item_complete
        self.poll_interval = poll_interval
        self.grace_period = grace_period
        self._sleep = sleep
        self._clock = clock

        self.items: List[JobRecord] = []
        self.stats = QueueStats()
        self._reported: Set[str] = set()

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    @property
    def has_active_items(self) -> bool:
        return self.stats.pending > 0 or self.stats.processing > 0

    async def add_to_queue(self, image_urls: List[str], condition: str = "Good") -> EnqueueResponse:
        """
        Submit an appraisal and refresh the local view.

        Raises:
            AppraisalError subclass matching the API's error status
        """
        response = await self.client.post(
            ADD_PATH,
            json={"imageReferences": image_urls, "condition": condition},
            headers=self._headers,
        )
        _raise_for_error(response)
        accepted = EnqueueResponse.model_validate(response.json())

        # Count the new job before the next status call confirms it
        self.stats.pending += 1
        self.stats.total += 1

        await self.refresh()
        return accepted

    async def refresh(self) -> bool:
        """
        One status call. Failures are logged and leave the local view untouched.

        Returns:
            True if the view was updated
        """
        try:
            response = await self.client.get(STATUS_PATH, headers=self._headers)
        except httpx.HTTPError as e:
            logger.warning(f"Queue status request failed: {e}")
            return False
        if not response.is_success:
            logger.warning(f"Queue status returned {response.status_code}")
            return False
        try:
            status = QueueStatusResponse.model_validate(response.json())
        except (ValueError, SchemaError) as e:
            logger.warning(f"Unreadable queue status: {e}")
            return False

        self.items = status.items
        self.stats = status.stats

        for item in status.newly_completed:
            if item.job_id in self._reported:
                continue
            self._reported.add(item.job_id)
            await self._notify(item)
        return True

    async def _notify(self, item: NewlyCompletedItem):
        if self.on_item_complete is None:
            return
        try:
            outcome = self.on_item_complete(item)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception(f"Completion callback failed for job {item.job_id}")

    async def run(self):
        """
        Poll while any job is pending or processing, then keep polling for
        ``grace_period`` seconds to catch a job that finished between polls.
        """
        idle_since: Optional[float] = None
        while True:
            await self.refresh()
            if self.has_active_items:
                idle_since = None
            elif idle_since is None:
                idle_since = self._clock()
            elif self._clock() - idle_since >= self.grace_period:
                logger.debug("Queue idle, polling stopped")
                return
            await self._sleep(self.poll_interval)

    def clear_completed(self):
        """Drop terminal jobs from the local view; the server is not touched."""
        self.items = [item for item in self.items if not item.status.is_terminal]
        self.stats = QueueStats(
            pending=self.stats.pending,
            processing=self.stats.processing,
            total=self.stats.pending + self.stats.processing,
        )
