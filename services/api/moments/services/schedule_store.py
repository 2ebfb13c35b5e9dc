"""Storage operations used by the moment-window dispatcher.

Every write commits immediately so that a claim is visible to other
invocations before any network I/O happens for that record, and so that one
record's failure never rolls back another record's progress.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, NamedTuple

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from moments.models.device_token import DeviceToken
from moments.models.moment_window_schedule import MomentWindowSchedule, ScheduleStatus

logger = logging.getLogger(__name__)


# Reads return plain rows, not ORM instances, so they stay readable after a
# rollback expires the session.
class DueSchedule(NamedTuple):
    id: uuid.UUID
    user_id: uuid.UUID
    next_due_at: datetime


class ActiveDevice(NamedTuple):
    token: str
    platform: str


class ScheduleStoreError(Exception):
    """A storage read or write failed."""


class ScheduleStore:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _execute(self, stmt, commit: bool = False) -> Any:
        try:
            result = await self._db.execute(stmt)
            if commit:
                await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            raise ScheduleStoreError(str(e)) from e
        return result

    async def fetch_due(self, now: datetime, limit: int) -> list[DueSchedule]:
        """Pending, unclaimed schedules due at or before ``now``, earliest first."""
        stmt = (
            select(
                MomentWindowSchedule.id,
                MomentWindowSchedule.user_id,
                MomentWindowSchedule.next_due_at,
            )
            .where(
                MomentWindowSchedule.status == ScheduleStatus.PENDING,
                MomentWindowSchedule.next_due_at <= now,
                or_(
                    MomentWindowSchedule.claimed_until.is_(None),
                    MomentWindowSchedule.claimed_until <= now,
                ),
            )
            .order_by(MomentWindowSchedule.next_due_at.asc())
            .limit(limit)
        )
        result = await self._execute(stmt)
        return [DueSchedule(*row) for row in result.all()]

    async def fetch_active_devices(self, user_id: uuid.UUID) -> list[ActiveDevice]:
        stmt = select(DeviceToken.token, DeviceToken.platform).where(
            DeviceToken.user_id == user_id,
            DeviceToken.is_active.is_(True),
        )
        result = await self._execute(stmt)
        return [ActiveDevice(*row) for row in result.all()]

    async def claim(
        self,
        schedule_id: uuid.UUID,
        token: uuid.UUID,
        now: datetime,
        lease: timedelta,
    ) -> bool:
        """Atomically take a lease on a pending schedule.

        Returns False when the schedule is no longer pending or another
        invocation holds an unexpired claim.
        """
        stmt = (
            update(MomentWindowSchedule)
            .where(
                MomentWindowSchedule.id == schedule_id,
                MomentWindowSchedule.status == ScheduleStatus.PENDING,
                or_(
                    MomentWindowSchedule.claimed_until.is_(None),
                    MomentWindowSchedule.claimed_until <= now,
                ),
            )
            .values(claim_token=token, claimed_until=now + lease)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt, commit=True)
        return result.rowcount == 1

    async def mark_sent(self, schedule_id: uuid.UUID, token: uuid.UUID, sent_at: datetime) -> None:
        stmt = (
            update(MomentWindowSchedule)
            .where(
                MomentWindowSchedule.id == schedule_id,
                MomentWindowSchedule.status == ScheduleStatus.PENDING,
                MomentWindowSchedule.claim_token == token,
            )
            .values(
                status=ScheduleStatus.SENT,
                notification_sent_at=sent_at,
                claim_token=None,
                claimed_until=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt, commit=True)
        if result.rowcount != 1:
            raise ScheduleStoreError(f"schedule {schedule_id} is no longer claimed by this run")

    async def release(self, schedule_id: uuid.UUID, token: uuid.UUID) -> None:
        stmt = (
            update(MomentWindowSchedule)
            .where(
                MomentWindowSchedule.id == schedule_id,
                MomentWindowSchedule.claim_token == token,
            )
            .values(claim_token=None, claimed_until=None)
            .execution_options(synchronize_session=False)
        )
        await self._execute(stmt, commit=True)

    async def deactivate_tokens(self, tokens: list[str]) -> int:
        if not tokens:
            return 0
        stmt = (
            update(DeviceToken)
            .where(DeviceToken.token.in_(tokens))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        result = await self._execute(stmt, commit=True)
        return result.rowcount

    async def reset(self) -> None:
        """Discard any half-finished transaction left by an interrupted call."""
        await self._db.rollback()
