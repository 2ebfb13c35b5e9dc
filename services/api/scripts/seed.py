"""Seed script: populates dev DB with a user's devices and a due moment window."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from moments.config import get_settings
from moments.models.device_token import DeviceToken
from moments.models.moment_window_schedule import MomentWindowSchedule, ScheduleStatus

SEED_USER_ID = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")
SEED_DEVICES = [
    ("ios", "ExponentPushToken[seed-ios-0000000000]"),
    ("android", "ExponentPushToken[seed-android-00000]"),
]


async def seed():
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)

    async with session_factory() as db:
        result = await db.execute(select(DeviceToken.id).where(DeviceToken.user_id == SEED_USER_ID))
        if result.first():
            print(f"Seed user {SEED_USER_ID} already has devices; skipping.")
            await engine.dispose()
            return

        now = datetime.now(timezone.utc)

        db.add_all(
            DeviceToken(user_id=SEED_USER_ID, platform=platform, token=token, is_active=True)
            for platform, token in SEED_DEVICES
        )

        # Already due, so the next dispatcher pass picks it up
        db.add(
            MomentWindowSchedule(
                user_id=SEED_USER_ID,
                next_due_at=now - timedelta(seconds=5),
                status=ScheduleStatus.PENDING,
            )
        )

        await db.commit()
        print(f"Seeded: user={SEED_USER_ID}, {len(SEED_DEVICES)} devices, 1 due schedule")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
