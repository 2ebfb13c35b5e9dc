"""Moments FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse, Response
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

from moments.config import Settings, get_settings
from moments.dependencies import get_session_factory, init_db, shutdown_db
from moments.middleware.error_handler import ErrorHandlerMiddleware
from moments.middleware.logging import LoggingMiddleware, setup_logging
from moments.routers import devices, dispatch, schedules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    settings = app.state.settings
    setup_logging(debug=settings.debug)
    logger.info(
        "Starting Moments API (env=%s, expo_token=%s)",
        settings.app_env,
        "set" if settings.has_expo_access_token else "unset",
    )

    init_db(settings)

    yield

    await shutdown_db()
    logger.info("Moments API shutting down")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Moments - Moment Window Service",
        description="Moment window scheduling, device registration and push dispatch",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings

    # Middleware (order matters: outermost first)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LoggingMiddleware)

    # Routers
    prefix = settings.api_prefix
    app.include_router(dispatch.router, prefix=prefix)
    app.include_router(schedules.router, prefix=prefix)
    app.include_router(devices.router, prefix=prefix)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "moments-api"}

    @app.get("/health/ready")
    async def health_ready():
        """Deep health check: verifies DB connectivity."""
        checks: dict = {}

        try:
            factory = get_session_factory(settings)
            async with factory() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as e:
            checks["database"] = f"error: {type(e).__name__}"

        all_ok = all(v == "ok" for v in checks.values())
        return JSONResponse(
            status_code=200 if all_ok else 503,
            content={"status": "ready" if all_ok else "degraded", "checks": checks},
        )

    # Prometheus instrumentation
    instrumentator = Instrumentator(
        excluded_handlers=["/health", "/health/ready", "/docs", "/redoc", "/openapi.json", "/metrics"],
    )
    instrumentator.instrument(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint with multiprocess support."""
        from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest, multiprocess

        multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
        if multiproc_dir:
            registry = CollectorRegistry()
            multiprocess.MultiProcessCollector(registry)
            data = generate_latest(registry)
        else:
            data = generate_latest()

        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


# Default app instance for uvicorn
app = create_app()
