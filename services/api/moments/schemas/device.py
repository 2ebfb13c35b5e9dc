"""Device registration schemas."""

from pydantic import BaseModel, Field


class DeviceRegisterRequest(BaseModel):
    platform: str = Field(..., pattern="^(ios|android)$")
    token: str = Field(..., min_length=1, max_length=512)


class DeviceRegisterResponse(BaseModel):
    platform: str
    is_active: bool


class DeviceDeactivateRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)


class DeviceDeactivateResponse(BaseModel):
    deactivated: int
