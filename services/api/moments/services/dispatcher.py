"""Moment-window dispatcher: one pass over due schedules per invocation."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from moments.config import Settings
from moments.metrics import (
    dispatch_duration_seconds,
    dispatch_runs_total,
    push_messages_total,
    schedules_total,
)
from moments.services.push_service import ExpoPushService, PushMessage, get_push_service
from moments.services.schedule_store import DueSchedule, ScheduleStore

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "moment_window"

# Ticket error meaning the token will never be deliverable again
DEVICE_NOT_REGISTERED = "DeviceNotRegistered"


class ScheduleFetchError(Exception):
    """The initial batch query failed; nothing was processed."""


class DispatchTimeoutError(Exception):
    pass


@dataclass
class DispatchResult:
    total: int = 0
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        if self.total == 0:
            return {"message": "No pending schedules found", "processed": 0}
        return {
            "message": "Processing complete",
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


class MomentWindowDispatcher:
    """Deliver one notification batch per due schedule and mark it sent.

    Records are processed sequentially. A failure on one record is recorded
    in the result and leaves that record pending for the next invocation;
    only a failure of the initial fetch aborts the run.
    """

    def __init__(
        self,
        store: ScheduleStore,
        push_service: ExpoPushService,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._push = push_service
        self._settings = settings
        self._batch_size = settings.dispatch_batch_size
        self._timeout = settings.dispatch_call_timeout_seconds
        self._lease = timedelta(seconds=settings.dispatch_claim_lease_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def _bounded(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise DispatchTimeoutError(f"{operation} timed out after {self._timeout:g}s") from e

    async def run(self, now: datetime | None = None) -> DispatchResult:
        started = time.monotonic()
        now = now or self._clock()
        run_token = uuid.uuid4()

        try:
            return await self._run(now, run_token)
        finally:
            dispatch_duration_seconds.observe(time.monotonic() - started)

    async def _run(self, now: datetime, run_token: uuid.UUID) -> DispatchResult:
        try:
            schedules = await self._bounded("schedule query", self._store.fetch_due(now, self._batch_size))
        except Exception as e:
            logger.error("Error querying schedules: %s", e)
            dispatch_runs_total.labels(outcome="fetch_failed").inc()
            raise ScheduleFetchError(str(e)) from e

        result = DispatchResult(total=len(schedules))
        if not schedules:
            dispatch_runs_total.labels(outcome="empty").inc()
            return result

        logger.info("Processing %d pending schedules (run=%s)", len(schedules), str(run_token)[:8])

        for schedule in schedules:
            await self._process(schedule, run_token, result)

        dispatch_runs_total.labels(outcome="completed").inc()
        logger.info(
            "Dispatch complete: processed=%d sent=%d failed=%d skipped=%d",
            result.processed,
            result.sent,
            result.failed,
            result.skipped,
        )
        return result

    async def _process(
        self,
        schedule: DueSchedule,
        run_token: uuid.UUID,
        result: DispatchResult,
    ) -> None:
        schedule_id = schedule.id
        claimed = False
        try:
            # Lease starts at claim time
            claimed = await self._bounded(
                "claim", self._store.claim(schedule_id, run_token, self._clock(), self._lease)
            )
            if not claimed:
                logger.info("Schedule %s claimed by another run; skipping", schedule_id)
                result.skipped += 1
                schedules_total.labels(result="skipped").inc()
                return

            await self._deliver(schedule)

            await self._bounded(
                "status update", self._store.mark_sent(schedule_id, run_token, self._clock())
            )
        except Exception as e:
            logger.error("Error processing schedule %s: %s", schedule_id, e)
            result.failed += 1
            result.errors.append(f"{schedule_id}: {e}")
            schedules_total.labels(result="failed").inc()
            if claimed:
                await self._release(schedule_id, run_token)
            return

        result.processed += 1
        result.sent += 1
        schedules_total.labels(result="sent").inc()

    async def _deliver(self, schedule: DueSchedule) -> None:
        devices = await self._bounded(
            "device lookup", self._store.fetch_active_devices(schedule.user_id)
        )
        if not devices:
            logger.info("No active device tokens for user %s", str(schedule.user_id)[:8])
            return

        messages = [
            PushMessage(
                to=device.token,
                title=self._settings.notification_title,
                body=self._settings.notification_body,
                data={"type": NOTIFICATION_TYPE, "scheduleId": str(schedule.id)},
            )
            for device in devices
        ]
        tickets = await self._bounded("push gateway call", self._push.send_batch(messages))

        unregistered = []
        for message, ticket in zip(messages, tickets):
            push_messages_total.labels(status="ok" if ticket.ok else "error").inc()
            if not ticket.ok and ticket.error_code == DEVICE_NOT_REGISTERED:
                unregistered.append(message.to)
        if unregistered:
            await self._deactivate(unregistered)

        logger.info("Sent notifications for schedule %s to %d device(s)", schedule.id, len(devices))

    async def _deactivate(self, tokens: list[str]) -> None:
        try:
            count = await self._bounded("token deactivation", self._store.deactivate_tokens(tokens))
            logger.info("Deactivated %d unregistered device token(s)", count)
        except Exception as e:
            logger.warning("Could not deactivate unregistered tokens: %s", e)
            await self._reset()

    async def _release(self, schedule_id: uuid.UUID, run_token: uuid.UUID) -> None:
        # The lease expires on its own if this fails
        await self._reset()
        try:
            await self._bounded("claim release", self._store.release(schedule_id, run_token))
        except Exception as e:
            logger.warning("Could not release claim on schedule %s: %s", schedule_id, e)

    async def _reset(self) -> None:
        try:
            await self._store.reset()
        except Exception as e:
            logger.warning("Session rollback failed: %s", e)


def get_dispatcher(db: AsyncSession, settings: Settings) -> MomentWindowDispatcher:
    """Factory that wires up a MomentWindowDispatcher with its dependencies."""
    return MomentWindowDispatcher(
        store=ScheduleStore(db),
        push_service=get_push_service(settings),
        settings=settings,
    )
