"""Celery task that runs the moment-window dispatcher on the beat schedule."""

import asyncio
import logging

from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from moments.config import get_settings
from moments.services.dispatcher import get_dispatcher

logger = logging.getLogger(__name__)


async def _run_dispatch() -> dict:
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with session_factory() as db:
            dispatcher = get_dispatcher(db, settings)
            result = await dispatcher.run()
            return result.to_response()
    finally:
        await engine.dispose()


@shared_task(name="moments.tasks.dispatch_tasks.dispatch_moment_windows")
def dispatch_moment_windows() -> dict:
    """Periodic task: send due moment-window notifications.

    Not retried on failure; the next beat tick is the retry. A failed batch
    query raises ScheduleFetchError so the task is recorded as failed.
    """
    response = asyncio.run(_run_dispatch())
    logger.info("Moment window dispatch finished: %s", response)
    return response
