"""Retention cleanup tasks."""

import logging
from typing import Any

from flaschenpost.core.database import async_session_maker
from flaschenpost.services.gdpr_service import GDPRService
from flaschenpost.workers.celery_app import BaseTask, celery_app, run_async

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.maintenance.cleanup_expired_data",
    base=BaseTask,
    bind=True,
)
def cleanup_expired_data(self: BaseTask) -> dict[str, Any]:  # noqa: ARG001
    """Expire stale reservations, erase users past retention and purge old logs."""
    return run_async(_cleanup_expired_data_async())


async def _cleanup_expired_data_async() -> dict[str, Any]:
    async with async_session_maker() as session:
        result = await GDPRService(session).cleanup_expired_data()

    logger.info(
        "Cleanup task finished: expired_reservations=%d deleted_users=%d cleaned_logs=%d",
        result.expired_reservations,
        result.deleted_users,
        result.cleaned_logs,
    )
    return {
        "expired_reservations": result.expired_reservations,
        "deleted_users": result.deleted_users,
        "cleaned_logs": result.cleaned_logs,
        "status": "completed",
    }
