"""Moments database models."""

from moments.models.device_token import DeviceToken
from moments.models.moment_window_schedule import MomentWindowSchedule, ScheduleStatus

__all__ = [
    "DeviceToken",
    "MomentWindowSchedule",
    "ScheduleStatus",
]
