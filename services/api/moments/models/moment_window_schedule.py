"""Moment window schedule model: one notification obligation per row."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, Integer, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from moments.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ScheduleStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    CANCELLED = "cancelled"


class MomentWindowSchedule(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "moment_window_schedule"
    __table_args__ = (
        # At most one pending schedule per user
        Index(
            "ix_moment_window_schedule_user_pending",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
        Index(
            "ix_moment_window_schedule_pending_due",
            "next_due_at",
            postgresql_where=text("status = 'pending'"),
        ),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    next_due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    min_delay_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    max_delay_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=120)
    status: Mapped[ScheduleStatus] = mapped_column(
        Enum(ScheduleStatus, name="schedule_status", values_callable=lambda e: [m.value for m in e]),
        default=ScheduleStatus.PENDING,
        nullable=False,
    )
    notification_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Dispatcher claim; status stays pending while claimed
    claim_token: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    claimed_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<MomentWindowSchedule {self.id} status={self.status.value}>"
