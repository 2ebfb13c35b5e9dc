"""Moment window activation endpoints used by the mobile app."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from moments.dependencies import get_current_user_id, get_db
from moments.models.moment_window_schedule import MomentWindowSchedule
from moments.schemas.schedule import ScheduleActivateRequest, ScheduleCancelResponse, ScheduleResponse
from moments.services.schedule_service import activate_schedule, cancel_pending_schedule, get_pending_schedule

router = APIRouter(prefix="/moment-windows", tags=["schedules"])


def _to_response(schedule: MomentWindowSchedule) -> ScheduleResponse:
    return ScheduleResponse(
        id=str(schedule.id),
        next_due_at=schedule.next_due_at,
        min_delay_seconds=schedule.min_delay_seconds,
        max_delay_seconds=schedule.max_delay_seconds,
        status=schedule.status.value,
        notification_sent_at=schedule.notification_sent_at,
    )


@router.post("/schedule", response_model=ScheduleResponse, status_code=201)
async def activate(
    body: ScheduleActivateRequest | None = None,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Schedule (or re-arm) the caller's next moment window."""
    body = body or ScheduleActivateRequest()
    schedule = await activate_schedule(
        db,
        user_id,
        min_delay=body.min_delay_seconds,
        max_delay=body.max_delay_seconds,
    )
    return _to_response(schedule)


@router.get("/schedule", response_model=ScheduleResponse)
async def get_schedule(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    schedule = await get_pending_schedule(db, user_id)
    if schedule is None:
        raise HTTPException(status_code=404, detail="No pending schedule")
    return _to_response(schedule)


@router.delete("/schedule", response_model=ScheduleCancelResponse)
async def cancel(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    cancelled = await cancel_pending_schedule(db, user_id)
    return ScheduleCancelResponse(cancelled=cancelled)
