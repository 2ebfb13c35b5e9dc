"""Last-resort handler that turns unhandled exceptions into a JSON 500."""

import logging
import traceback

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from moments.middleware.logging import redact_pii

logger = logging.getLogger(__name__)

INTERNAL_ERROR_DETAIL = "An internal error occurred. Please try again later."


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Log the failing request with its request id and hide the exception text."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            # Bound by LoggingMiddleware, which wraps this one
            request_id = structlog.contextvars.get_contextvars().get("request_id", "-")
            logger.error(
                "Unhandled %s on %s %s (request=%s): %s\n%s",
                type(exc).__name__,
                request.method,
                redact_pii(request.url.path),
                request_id,
                redact_pii(str(exc)),
                redact_pii(traceback.format_exc()),
            )
            return JSONResponse(
                status_code=500,
                content={
                    "detail": INTERNAL_ERROR_DETAIL,
                    "error_type": type(exc).__name__,
                    "request_id": request_id,
                },
            )
