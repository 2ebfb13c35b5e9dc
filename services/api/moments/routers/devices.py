"""Device token registration for push notifications."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import func, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from moments.dependencies import get_current_user_id, get_db
from moments.models.device_token import DeviceToken
from moments.schemas.device import (
    DeviceDeactivateRequest,
    DeviceDeactivateResponse,
    DeviceRegisterRequest,
    DeviceRegisterResponse,
)

router = APIRouter(prefix="/devices", tags=["devices"])


@router.post("/register", response_model=DeviceRegisterResponse, status_code=201)
async def register_device(
    body: DeviceRegisterRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Register a device for push notifications.

    One token per user per platform: registering again for the same
    platform replaces the token and re-activates it.
    """
    stmt = insert(DeviceToken).values(
        id=uuid.uuid4(),
        user_id=user_id,
        platform=body.platform,
        token=body.token,
        is_active=True,
    )
    stmt = stmt.on_conflict_do_update(
        constraint="uq_device_tokens_user_platform",
        set_={"token": stmt.excluded.token, "is_active": True, "updated_at": func.now()},
    )
    await db.execute(stmt)
    return DeviceRegisterResponse(platform=body.platform, is_active=True)


@router.post("/deactivate", response_model=DeviceDeactivateResponse)
async def deactivate_device(
    body: DeviceDeactivateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Stop sending pushes to one of the caller's tokens (e.g. on sign-out)."""
    result = await db.execute(
        update(DeviceToken)
        .where(DeviceToken.user_id == user_id, DeviceToken.token == body.token)
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return DeviceDeactivateResponse(deactivated=result.rowcount)
