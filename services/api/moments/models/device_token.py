"""Device token model for push notifications."""

import uuid

from sqlalchemy import Boolean, String, UniqueConstraint, true
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from moments.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class DeviceToken(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "device_tokens"
    __table_args__ = (UniqueConstraint("user_id", "platform", name="uq_device_tokens_user_platform"),)

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(10), nullable=False)  # "ios" or "android"
    token: Mapped[str] = mapped_column(String(512), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())

    def __repr__(self) -> str:
        return f"<DeviceToken {self.platform} active={self.is_active}>"
