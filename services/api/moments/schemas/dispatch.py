"""Dispatcher trigger response schemas."""

from pydantic import BaseModel


class DispatchResponse(BaseModel):
    message: str
    processed: int
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = []


class DispatchEmptyResponse(BaseModel):
    message: str
    processed: int


class DispatchErrorResponse(BaseModel):
    error: str
    details: str
