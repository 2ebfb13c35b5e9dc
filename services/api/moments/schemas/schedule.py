"""Moment window schedule schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class ScheduleActivateRequest(BaseModel):
    min_delay_seconds: int = Field(default=30, ge=0, le=86400)
    max_delay_seconds: int = Field(default=120, ge=0, le=86400)

    @model_validator(mode="after")
    def check_bounds(self) -> "ScheduleActivateRequest":
        if self.min_delay_seconds > self.max_delay_seconds:
            raise ValueError("min_delay_seconds must not exceed max_delay_seconds")
        return self


class ScheduleResponse(BaseModel):
    id: str
    next_due_at: datetime
    min_delay_seconds: int
    max_delay_seconds: int
    status: str
    notification_sent_at: datetime | None = None


class ScheduleCancelResponse(BaseModel):
    cancelled: int
