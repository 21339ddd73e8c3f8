"""Celery application configuration."""

import asyncio
from collections.abc import Coroutine
from typing import Any

from celery import Celery
from celery.schedules import crontab

from flaschenpost.core.config import settings
from flaschenpost.core.database import engine

# Create Celery app
celery_app = Celery(
    "flaschenpost",
    broker=str(settings.redis_url),
    backend=str(settings.redis_url),
    include=[
        "flaschenpost.workers.tasks.maintenance",
        "flaschenpost.workers.tasks.notifications",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Europe/Berlin",
    enable_utc=True,
    # Task safety limits
    task_time_limit=900,
    task_soft_time_limit=840,
    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Result backend settings
    result_expires=86400,  # Keep results for a day
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
    task_default_queue="default",
    # Beat schedule (local time)
    beat_schedule={
        "cleanup-expired-data": {
            "task": "tasks.maintenance.cleanup_expired_data",
            "schedule": crontab(hour=3, minute=0),
        },
        "send-pickup-reminders": {
            "task": "tasks.notifications.send_pickup_reminders",
            "schedule": crontab(hour=9, minute=0),
        },
    },
)


# Task base class with common error handling
class BaseTask(celery_app.Task):  # type: ignore[misc, name-defined]
    """Base task class with error handling."""

    abstract = True
    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 600  # Max 10 minutes between retries
    retry_jitter = True
    max_retries = 3


def run_async[T](coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine in a fresh event loop, disposing DB connections after.

    asyncpg connections are bound to the loop that created them, so pooled
    connections must not outlive the per-task loop.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(engine.dispose())
        loop.close()
