"""
In-process Event Bus
Decouples best-effort follow-ups (streaks) from the appraisal pipeline:
a subscriber failure is logged and never reaches the publisher.
"""

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List

logger = logging.getLogger(__name__)

VALUATION_COMPLETED = "valuation.completed"

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class EventBus:
    """Named async pub/sub with per-handler failure isolation."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        if handler not in self._handlers[event]:
            self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        if handler in self._handlers[event]:
            self._handlers[event].remove(handler)

    def handlers(self, event: str) -> List[EventHandler]:
        return list(self._handlers.get(event, []))

    async def publish(self, event: str, payload: Dict[str, Any]) -> int:
        """
        Deliver ``payload`` to every subscriber of ``event``.

        Returns:
            Number of handlers that completed without raising
        """
        delivered = 0
        for handler in self.handlers(event):
            try:
                await handler(payload)
                delivered += 1
            except Exception:
                logger.exception(f"Subscriber {getattr(handler, '__name__', handler)!r} failed for {event}")
        return delivered


__all__ = ["EventBus", "EventHandler", "VALUATION_COMPLETED"]
