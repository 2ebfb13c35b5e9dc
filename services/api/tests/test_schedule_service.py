"""Unit tests for moment window activation."""

import random
import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import NOW
from moments.models.moment_window_schedule import ScheduleStatus
from moments.services.schedule_service import (
    activate_schedule,
    cancel_pending_schedule,
    get_pending_schedule,
    pick_delay_seconds,
)


def _result(first=None, rowcount=0):
    result = MagicMock()
    result.scalars.return_value.first.return_value = first
    result.rowcount = rowcount
    return result


def _mock_db(*results):
    db = MagicMock()
    db.execute = AsyncMock(side_effect=list(results))
    db.flush = AsyncMock()
    nested = MagicMock()
    nested.__aenter__ = AsyncMock(return_value=nested)
    nested.__aexit__ = AsyncMock(return_value=False)
    db.begin_nested.return_value = nested
    return db


class TestPickDelay:
    def test_within_bounds(self):
        rng = random.Random(7)
        delays = {pick_delay_seconds(30, 120, rng) for _ in range(200)}

        assert min(delays) >= 30
        assert max(delays) <= 120

    def test_fixed_delay(self):
        assert pick_delay_seconds(45, 45) == 45

    def test_min_above_max_rejected(self):
        with pytest.raises(ValueError):
            pick_delay_seconds(120, 30)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            pick_delay_seconds(-1, 30)


class TestActivate:
    @pytest.mark.asyncio
    async def test_creates_pending_schedule(self, sample_user_id):
        db = _mock_db(_result(first=None))

        schedule = await activate_schedule(db, sample_user_id, 60, 60, now=NOW)

        db.add.assert_called_once_with(schedule)
        db.begin_nested.assert_called_once()
        assert schedule.user_id == sample_user_id
        assert schedule.status == ScheduleStatus.PENDING
        assert schedule.next_due_at == NOW + timedelta(seconds=60)
        assert schedule.min_delay_seconds == 60
        assert schedule.max_delay_seconds == 60

    @pytest.mark.asyncio
    async def test_rearms_existing_pending_schedule(self, sample_user_id):
        existing = MagicMock()
        existing.id = uuid.uuid4()
        db = _mock_db(_result(first=existing))

        schedule = await activate_schedule(db, sample_user_id, 30, 30, now=NOW)

        assert schedule is existing
        assert existing.next_due_at == NOW + timedelta(seconds=30)
        assert existing.min_delay_seconds == 30
        db.add.assert_not_called()
        db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_insert_falls_back_to_rearm(self, sample_user_id):
        existing = MagicMock()
        existing.id = uuid.uuid4()
        db = _mock_db(_result(first=None), _result(first=existing))
        db.flush.side_effect = [
            IntegrityError("INSERT", {}, Exception("duplicate key value violates unique constraint")),
            None,
        ]

        schedule = await activate_schedule(db, sample_user_id, 10, 10, now=NOW)

        assert schedule is existing
        assert existing.next_due_at == NOW + timedelta(seconds=10)
        assert db.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_integrity_error_without_pending_row_propagates(self, sample_user_id):
        db = _mock_db(_result(first=None), _result(first=None))
        db.flush.side_effect = IntegrityError("INSERT", {}, Exception("other constraint"))

        with pytest.raises(IntegrityError):
            await activate_schedule(db, sample_user_id, 10, 10, now=NOW)

    @pytest.mark.asyncio
    async def test_invalid_bounds_rejected_before_query(self, sample_user_id):
        db = _mock_db()

        with pytest.raises(ValueError):
            await activate_schedule(db, sample_user_id, 100, 10)

        db.execute.assert_not_called()


class TestLookupAndCancel:
    @pytest.mark.asyncio
    async def test_get_pending_returns_first(self, sample_user_id):
        existing = MagicMock()
        db = _mock_db(_result(first=existing))

        assert await get_pending_schedule(db, sample_user_id) is existing

    @pytest.mark.asyncio
    async def test_cancel_returns_rowcount(self, sample_user_id):
        db = _mock_db(_result(rowcount=1))

        assert await cancel_pending_schedule(db, sample_user_id) == 1
        stmt = db.execute.call_args.args[0]
        assert "UPDATE moment_window_schedule" in str(stmt)
