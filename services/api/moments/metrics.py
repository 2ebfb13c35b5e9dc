"""Prometheus metric definitions for the moments service.

Single source of truth for all custom metrics. Import from here in API and Celery code.
"""

from prometheus_client import Counter, Histogram

# --- Celery task metrics ---

celery_task_total = Counter(
    "moments_celery_task_total",
    "Total Celery tasks executed",
    ["task_name", "status"],
)

celery_task_duration_seconds = Histogram(
    "moments_celery_task_duration_seconds",
    "Celery task execution duration in seconds",
    ["task_name"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

# --- Dispatcher metrics ---

dispatch_runs_total = Counter(
    "moments_dispatch_runs_total",
    "Dispatcher invocations by outcome",
    ["outcome"],
)

dispatch_duration_seconds = Histogram(
    "moments_dispatch_duration_seconds",
    "Wall-clock duration of one dispatcher pass",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

schedules_total = Counter(
    "moments_schedules_total",
    "Schedule records handled by the dispatcher, by result",
    ["result"],
)

push_messages_total = Counter(
    "moments_push_messages_total",
    "Push messages submitted to the gateway, by ticket status",
    ["status"],
)
