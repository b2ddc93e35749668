"""Tests for the queue status service."""

from datetime import datetime, timedelta

import pytest

from app.core.exceptions import NotFoundError
from app.schemas.job import JobStatus
from app.services.status import compute_stats, get_job, get_queue_status

from tests.conftest import USER_ID, add_job

NOW = datetime(2026, 3, 10, 12, 0, 0)
SUMMARY = {"itemName": "Brass Compass", "priceRange": {"low": 40, "high": 60}, "currency": "EUR"}


def _completed(session_factory, completed_at, created_at=None, **fields):
    return add_job(
        session_factory,
        JobStatus.COMPLETED,
        created_at=created_at or completed_at - timedelta(seconds=30),
        started_at=completed_at - timedelta(seconds=20),
        completed_at=completed_at,
        result=fields.pop("result", SUMMARY),
        appraisal_id=fields.pop("appraisal_id", "appraisal-1"),
        **fields,
    )


class TestQueueStatus:
    """Test get_queue_status."""

    def test_stats_cover_every_state(self, db, session_factory):
        add_job(session_factory, JobStatus.PENDING, created_at=NOW - timedelta(minutes=1))
        add_job(
            session_factory, JobStatus.PROCESSING,
            created_at=NOW - timedelta(minutes=2), started_at=NOW - timedelta(minutes=1),
        )
        _completed(session_factory, NOW - timedelta(minutes=10))
        add_job(
            session_factory, JobStatus.FAILED,
            created_at=NOW - timedelta(minutes=5), started_at=NOW - timedelta(minutes=5),
            completed_at=NOW - timedelta(minutes=4), error_message="Failed to fetch image: x",
        )

        status = get_queue_status(db, USER_ID, now=NOW)

        stats = status.stats
        assert (stats.pending, stats.processing, stats.completed, stats.failed) == (1, 1, 1, 1)
        assert stats.total == stats.pending + stats.processing + stats.completed + stats.failed

    def test_items_are_newest_first(self, db, session_factory):
        older = add_job(session_factory, created_at=NOW - timedelta(hours=2))
        newer = add_job(session_factory, created_at=NOW - timedelta(minutes=1))

        status = get_queue_status(db, USER_ID, now=NOW)

        assert [item.id for item in status.items] == [newer, older]

    def test_lookback_excludes_old_jobs(self, db, session_factory):
        add_job(session_factory, created_at=NOW - timedelta(hours=25))
        recent = add_job(session_factory, created_at=NOW - timedelta(hours=23))

        status = get_queue_status(db, USER_ID, now=NOW)

        assert [item.id for item in status.items] == [recent]
        assert status.stats.total == 1

    def test_other_users_jobs_are_hidden(self, db, session_factory):
        add_job(session_factory, user_id="someone-else", created_at=NOW)

        status = get_queue_status(db, USER_ID, now=NOW)

        assert status.items == []
        assert status.stats.total == 0

    def test_newly_completed_window(self, db, session_factory):
        just_now = _completed(session_factory, NOW - timedelta(seconds=2))
        _completed(session_factory, NOW - timedelta(hours=1), appraisal_id="appraisal-2")
        _completed(session_factory, NOW - timedelta(seconds=5), appraisal_id="appraisal-3")

        status = get_queue_status(db, USER_ID, now=NOW)

        assert [item.job_id for item in status.newly_completed] == [just_now]
        item = status.newly_completed[0]
        assert item.record_id == "appraisal-1"
        assert item.item_name == "Brass Compass"
        assert item.value == 50
        assert item.currency == "EUR"

    def test_failed_jobs_never_appear_as_newly_completed(self, db, session_factory):
        add_job(
            session_factory, JobStatus.FAILED,
            created_at=NOW - timedelta(seconds=10), started_at=NOW - timedelta(seconds=9),
            completed_at=NOW - timedelta(seconds=1), error_message="No text response from AI",
        )

        status = get_queue_status(db, USER_ID, now=NOW)

        assert status.newly_completed == []
        assert status.items[0].record_id is None
        assert status.items[0].error_message == "No text response from AI"

    def test_reads_are_idempotent(self, db, session_factory):
        add_job(session_factory, created_at=NOW - timedelta(minutes=3))
        _completed(session_factory, NOW - timedelta(minutes=2))

        first = get_queue_status(db, USER_ID, now=NOW)
        second = get_queue_status(db, USER_ID, now=NOW)

        assert first.items == second.items
        assert first.stats == second.stats

    def test_serialized_with_camel_case(self, db, session_factory):
        _completed(session_factory, NOW - timedelta(seconds=1))

        body = get_queue_status(db, USER_ID, now=NOW).model_dump(by_alias=True, mode="json")

        assert set(body) == {"items", "stats", "newlyCompleted"}
        item = body["items"][0]
        assert item["recordId"] == "appraisal-1"
        assert item["result"]["priceRange"] == {"low": 40, "high": 60}
        assert body["newlyCompleted"][0]["itemName"] == "Brass Compass"


class TestComputeStats:
    """Test compute_stats on an empty input."""

    def test_empty(self):
        stats = compute_stats([])
        assert stats.total == 0


class TestGetJob:
    """Test single-job lookup."""

    def test_returns_owned_job(self, db, session_factory):
        job_id = add_job(session_factory, created_at=NOW)
        record = get_job(db, USER_ID, job_id)
        assert record.id == job_id
        assert record.status == JobStatus.PENDING
        assert record.started_at is None

    def test_foreign_job_is_not_found(self, db, session_factory):
        job_id = add_job(session_factory, user_id="someone-else", created_at=NOW)
        with pytest.raises(NotFoundError):
            get_job(db, USER_ID, job_id)
