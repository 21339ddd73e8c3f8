"""Email notification tasks."""

import logging
from datetime import date, timedelta
from typing import Any

from flaschenpost.core.database import async_session_maker
from flaschenpost.models.base import utcnow
from flaschenpost.services.email_service import EmailError, EmailService
from flaschenpost.services.reservation_service import ReservationService
from flaschenpost.workers.celery_app import BaseTask, celery_app, run_async

logger = logging.getLogger(__name__)


@celery_app.task(  # type: ignore[untyped-decorator]
    name="tasks.notifications.send_pickup_reminders",
    base=BaseTask,
    bind=True,
)
def send_pickup_reminders(self: BaseTask, pickup_date: str | None = None) -> dict[str, Any]:  # noqa: ARG001
    """Remind families whose pickup is due tomorrow (or on ``pickup_date``, ISO format)."""
    due = date.fromisoformat(pickup_date) if pickup_date else utcnow().date() + timedelta(days=1)
    return run_async(_send_pickup_reminders_async(due))


async def _send_pickup_reminders_async(
    pickup_date: date,
    email: EmailService | None = None,
) -> dict[str, Any]:
    """Send one reminder per due reservation; failed sends are skipped."""
    email = email or EmailService()
    if not email.is_configured:
        logger.warning("Skipping pickup reminders for %s: SMTP not configured", pickup_date)
        return {"pickup_date": pickup_date.isoformat(), "sent": 0, "failed": 0, "status": "skipped"}

    async with async_session_maker() as session:
        reservations = await ReservationService(session).get_pickups_due(pickup_date)

    sent = failed = 0
    for reservation in reservations:
        try:
            await email.send_pickup_reminder(reservation, reservation.user, reservation.magazine)
            sent += 1
        except EmailError as e:
            failed += 1
            logger.error("Pickup reminder failed: reservation=%s error=%s", reservation.id, e)

    logger.info("Pickup reminders for %s: sent=%d failed=%d", pickup_date, sent, failed)
    return {
        "pickup_date": pickup_date.isoformat(),
        "sent": sent,
        "failed": failed,
        "status": "completed",
    }
