"""
Streak Updater
Consecutive-day appraisal counter kept on the user row.

The read-then-write below is not locked: two appraisals finishing at the
same instant for one user can lose an increment.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import SideEffectError
from app.models.user import User
from app.services.events import EventBus, VALUATION_COMPLETED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakState:
    current_streak: int
    longest_streak: int
    last_appraisal_date: Optional[date]


def compute_streak(current: int, longest: int, last_date: Optional[date], today: date) -> StreakState:
    """Same day keeps the streak, the next day extends it, any other gap restarts at 1."""
    current = current or 0
    longest = longest or 0

    if last_date is None:
        current = 1
    else:
        days = (today - last_date).days
        if days == 0:
            pass
        elif days == 1:
            current += 1
        else:
            current = 1

    if current > longest:
        longest = current

    return StreakState(current_streak=current, longest_streak=longest, last_appraisal_date=today)


def update_user_streak(db: Session, user_id: str, today: Optional[date] = None) -> Optional[StreakState]:
    """Apply today's appraisal to the user's streak. Unknown users are skipped."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        logger.debug(f"No user row for {user_id}, streak not updated")
        return None

    state = compute_streak(
        user.current_streak,
        user.longest_streak,
        user.last_appraisal_date,
        today or datetime.utcnow().date(),
    )
    user.current_streak = state.current_streak
    user.longest_streak = state.longest_streak
    user.last_appraisal_date = state.last_appraisal_date
    user.updated_at = datetime.utcnow()
    db.commit()
    return state


class StreakSubscriber:
    """Handles ``valuation.completed`` by updating the owner's streak."""

    def __init__(self, session_factory: sessionmaker, today: Optional[Callable[[], date]] = None):
        self.session_factory = session_factory
        self.today = today or (lambda: datetime.utcnow().date())

    def _update(self, user_id: str) -> Optional[StreakState]:
        db = self.session_factory()
        try:
            return update_user_streak(db, user_id, self.today())
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def __call__(self, event: Dict[str, Any]) -> None:
        user_id = event["user_id"]
        try:
            state = await asyncio.to_thread(self._update, user_id)
        except Exception as e:
            raise SideEffectError(f"Streak update failed for user {user_id}: {e}", cause=e) from e
        if state:
            logger.info(f"Streak for {user_id}: current={state.current_streak} longest={state.longest_streak}")

    def register(self, bus: EventBus) -> None:
        bus.subscribe(VALUATION_COMPLETED, self)
