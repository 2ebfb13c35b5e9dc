"""Moment window activation: create, re-arm, cancel and look up schedules."""

import logging
import random
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from moments.models.moment_window_schedule import MomentWindowSchedule, ScheduleStatus

logger = logging.getLogger(__name__)

DEFAULT_MIN_DELAY_SECONDS = 30
DEFAULT_MAX_DELAY_SECONDS = 120


def pick_delay_seconds(min_delay: int, max_delay: int, rng: random.Random | None = None) -> int:
    """Uniform integer delay in [min_delay, max_delay]."""
    if min_delay < 0 or max_delay < 0:
        raise ValueError("delays must be non-negative")
    if min_delay > max_delay:
        raise ValueError("min_delay_seconds must not exceed max_delay_seconds")
    return (rng or random).randint(min_delay, max_delay)


async def get_pending_schedule(db: AsyncSession, user_id: uuid.UUID) -> MomentWindowSchedule | None:
    result = await db.execute(
        select(MomentWindowSchedule)
        .where(
            MomentWindowSchedule.user_id == user_id,
            MomentWindowSchedule.status == ScheduleStatus.PENDING,
        )
        .order_by(MomentWindowSchedule.next_due_at.asc())
        .limit(1)
    )
    return result.scalars().first()


def _rearm(schedule: MomentWindowSchedule, due_at: datetime, min_delay: int, max_delay: int) -> None:
    schedule.next_due_at = due_at
    schedule.min_delay_seconds = min_delay
    schedule.max_delay_seconds = max_delay


async def activate_schedule(
    db: AsyncSession,
    user_id: uuid.UUID,
    min_delay: int = DEFAULT_MIN_DELAY_SECONDS,
    max_delay: int = DEFAULT_MAX_DELAY_SECONDS,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> MomentWindowSchedule:
    """Schedule the user's next moment window a random delay from now.

    A user has at most one pending schedule; if one exists it is re-armed
    with the new due time instead of creating a second row.
    """
    delay = pick_delay_seconds(min_delay, max_delay, rng)
    now = now or datetime.now(timezone.utc)
    due_at = now + timedelta(seconds=delay)

    existing = await get_pending_schedule(db, user_id)
    if existing is not None:
        _rearm(existing, due_at, min_delay, max_delay)
        await db.flush()
        logger.info("Re-armed schedule %s for user %s (+%ds)", existing.id, str(user_id)[:8], delay)
        return existing

    schedule = MomentWindowSchedule(
        user_id=user_id,
        next_due_at=due_at,
        min_delay_seconds=min_delay,
        max_delay_seconds=max_delay,
        status=ScheduleStatus.PENDING,
    )
    try:
        async with db.begin_nested():
            db.add(schedule)
            await db.flush()
    except IntegrityError:
        # A concurrent activation created the pending row first
        logger.info("Pending schedule already exists for user %s; re-arming", str(user_id)[:8])
        existing = await get_pending_schedule(db, user_id)
        if existing is None:
            raise
        _rearm(existing, due_at, min_delay, max_delay)
        await db.flush()
        return existing

    logger.info("Created schedule %s for user %s (+%ds)", schedule.id, str(user_id)[:8], delay)
    return schedule


async def cancel_pending_schedule(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        update(MomentWindowSchedule)
        .where(
            MomentWindowSchedule.user_id == user_id,
            MomentWindowSchedule.status == ScheduleStatus.PENDING,
        )
        .values(status=ScheduleStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
