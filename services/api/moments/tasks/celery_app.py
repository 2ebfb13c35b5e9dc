"""Celery application configuration."""

import time

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, task_retry

from moments.config import get_settings
from moments.metrics import celery_task_duration_seconds, celery_task_total

settings = get_settings()

celery_app = Celery(
    "moments",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "moments.tasks.dispatch_tasks.*": {"queue": "notifications"},
    },
    beat_schedule={
        # Moment window push dispatch: every dispatch_interval_seconds (default 60s)
        "dispatch-moment-windows": {
            "task": "moments.tasks.dispatch_tasks.dispatch_moment_windows",
            "schedule": settings.dispatch_interval_seconds,
            # A run that misses its slot is superseded by the next one
            "options": {"expires": settings.dispatch_interval_seconds},
        },
    },
)

celery_app.autodiscover_tasks(["moments.tasks"], related_name="dispatch_tasks")

_task_start_times: dict[str, float] = {}


@task_prerun.connect
def _on_task_prerun(task_id=None, task=None, **kwargs):
    _task_start_times[task_id] = time.monotonic()


@task_postrun.connect
def _on_task_postrun(task_id=None, task=None, state=None, **kwargs):
    started = _task_start_times.pop(task_id, None)
    if started is not None:
        celery_task_duration_seconds.labels(task_name=task.name).observe(time.monotonic() - started)
    if state == "SUCCESS":
        celery_task_total.labels(task_name=task.name, status="success").inc()


@task_failure.connect
def _on_task_failure(sender=None, task_id=None, **kwargs):
    celery_task_total.labels(task_name=sender.name, status="failure").inc()


@task_retry.connect
def _on_task_retry(sender=None, **kwargs):
    celery_task_total.labels(task_name=sender.name, status="retry").inc()
