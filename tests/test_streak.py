"""Tests for the streak calculation and its event subscriber."""

from datetime import date

import pytest

from app.core.exceptions import SideEffectError
from app.models.user import User
from app.services.events import EventBus, VALUATION_COMPLETED
from app.services.streak import StreakSubscriber, compute_streak, update_user_streak

TODAY = date(2026, 3, 10)


class TestComputeStreak:
    """Test the pure streak rules."""

    def test_first_appraisal_starts_at_one(self):
        state = compute_streak(0, 0, None, TODAY)
        assert state.current_streak == 1
        assert state.longest_streak == 1
        assert state.last_appraisal_date == TODAY

    def test_same_day_keeps_streak(self):
        state = compute_streak(4, 7, TODAY, TODAY)
        assert state.current_streak == 4
        assert state.longest_streak == 7

    def test_next_day_extends_streak(self):
        state = compute_streak(4, 7, date(2026, 3, 9), TODAY)
        assert state.current_streak == 5
        assert state.longest_streak == 7

    def test_extension_raises_longest(self):
        state = compute_streak(7, 7, date(2026, 3, 9), TODAY)
        assert state.current_streak == 8
        assert state.longest_streak == 8

    def test_gap_resets_to_one(self):
        state = compute_streak(9, 12, date(2026, 3, 7), TODAY)
        assert state.current_streak == 1
        assert state.longest_streak == 12

    def test_month_boundary_counts_as_consecutive(self):
        state = compute_streak(2, 2, date(2026, 2, 28), date(2026, 3, 1))
        assert state.current_streak == 3

    def test_null_counters_are_treated_as_zero(self):
        state = compute_streak(None, None, date(2026, 3, 9), TODAY)
        assert state.current_streak == 1
        assert state.longest_streak == 1


class TestUpdateUserStreak:
    """Test persistence of the streak fields."""

    def test_updates_existing_user(self, db):
        db.add(User(id="user-1", current_streak=2, longest_streak=3, last_appraisal_date=date(2026, 3, 9)))
        db.commit()

        state = update_user_streak(db, "user-1", TODAY)

        assert state.current_streak == 3
        user = db.get(User, "user-1")
        assert user.current_streak == 3
        assert user.longest_streak == 3
        assert user.last_appraisal_date == TODAY

    def test_missing_user_is_a_no_op(self, db):
        assert update_user_streak(db, "ghost", TODAY) is None


class TestStreakSubscriber:
    """Test the valuation.completed subscriber."""

    @pytest.mark.asyncio
    async def test_handles_published_event(self, session_factory):
        session = session_factory()
        session.add(User(id="user-1", current_streak=0, longest_streak=0))
        session.commit()
        session.close()

        bus = EventBus()
        StreakSubscriber(session_factory, today=lambda: TODAY).register(bus)
        delivered = await bus.publish(VALUATION_COMPLETED, {"user_id": "user-1"})

        assert delivered == 1
        session = session_factory()
        user = session.get(User, "user-1")
        assert user.current_streak == 1
        assert user.last_appraisal_date == TODAY
        session.close()

    @pytest.mark.asyncio
    async def test_failure_is_wrapped(self, session_factory):
        def broken_today():
            raise RuntimeError("clock unavailable")

        session = session_factory()
        session.add(User(id="user-1"))
        session.commit()
        session.close()

        subscriber = StreakSubscriber(session_factory, today=broken_today)
        with pytest.raises(SideEffectError) as exc_info:
            await subscriber({"user_id": "user-1"})
        assert not exc_info.value.fatal
