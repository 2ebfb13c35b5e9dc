"""structlog setup and per-request access logging."""

import logging
import re
import time
import uuid
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Expo push tokens identify a device; keep them out of logs
PUSH_TOKEN_PATTERN = re.compile(r"Expo(nent)?PushToken\[[^\]]+\]")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Inbound ids from the scheduler or gateway are echoed back only if they look sane
INBOUND_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def redact_pii(text: str) -> str:
    """Replace push tokens and email addresses with placeholders."""
    text = PUSH_TOKEN_PATTERN.sub("[REDACTED_TOKEN]", text)
    return EMAIL_PATTERN.sub("[REDACTED_EMAIL]", text)


def setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # Services and tasks log through the standard library
    logging.basicConfig(format="%(levelname)s %(name)s %(message)s", level=level)


def _request_id(request: Request) -> str:
    inbound = request.headers.get(REQUEST_ID_HEADER, "")
    if INBOUND_REQUEST_ID.match(inbound):
        return inbound
    return uuid.uuid4().hex[:8]


class LoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and log its outcome."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _request_id(request)
        path = redact_pii(request.url.path)
        started = time.perf_counter()
        logger = structlog.get_logger()

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            await logger.ainfo(
                "request_started",
                method=request.method,
                path=path,
                client=request.client.host if request.client else "unknown",
            )
            response = await call_next(request)
            await logger.ainfo(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
