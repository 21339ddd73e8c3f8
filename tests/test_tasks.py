"""Tests for the Celery maintenance and notification tasks."""

from collections.abc import Callable
from datetime import date, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flaschenpost.models.reservation import ReservationStatus
from flaschenpost.services.email_service import EmailDeliveryError
from flaschenpost.workers.celery_app import celery_app
from flaschenpost.workers.tasks import maintenance, notifications


def test_beat_schedule() -> None:
    schedule = celery_app.conf.beat_schedule
    assert schedule["cleanup-expired-data"]["task"] == "tasks.maintenance.cleanup_expired_data"
    assert schedule["send-pickup-reminders"]["task"] == "tasks.notifications.send_pickup_reminders"
    assert celery_app.conf.timezone == "Europe/Berlin"


def test_cleanup_task_runs_coroutine() -> None:
    summary = {"expired_reservations": 0, "deleted_users": 0, "cleaned_logs": 0, "status": "completed"}
    with patch.object(
        maintenance, "_cleanup_expired_data_async", new=AsyncMock(return_value=summary)
    ):
        result = maintenance.cleanup_expired_data.apply().get()

    assert result == summary


def test_reminder_task_parses_date() -> None:
    summary = {"pickup_date": "2026-11-03", "sent": 0, "failed": 0, "status": "completed"}
    runner = AsyncMock(return_value=summary)
    with patch.object(notifications, "_send_pickup_reminders_async", new=runner):
        notifications.send_pickup_reminders.apply(kwargs={"pickup_date": "2026-11-03"}).get()

    runner.assert_called_once_with(date(2026, 11, 3))


class TestCleanupExpiredData:
    @pytest.mark.asyncio
    async def test_reports_counts(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        user_factory: Callable[..., Any],
    ) -> None:
        await user_factory(retention_days=-1)

        with patch.object(maintenance, "async_session_maker", session_factory):
            result = await maintenance._cleanup_expired_data_async()

        assert result == {
            "expired_reservations": 0,
            "deleted_users": 1,
            "cleaned_logs": 0,
            "status": "completed",
        }


class TestSendPickupReminders:
    @pytest.mark.asyncio
    async def test_sends_one_per_due_reservation(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_service: MagicMock,
        magazine_factory: Callable[..., Any],
        user_factory: Callable[..., Any],
        reservation_factory: Callable[..., Any],
    ) -> None:
        magazine = await magazine_factory()
        user = await user_factory()
        tomorrow = date.today() + timedelta(days=1)
        await reservation_factory(user_id=user.id, magazine_id=magazine.id, pickup_date=tomorrow)
        await reservation_factory(user_id=user.id, magazine_id=magazine.id, pickup_date=tomorrow)
        await reservation_factory(
            user_id=user.id,
            magazine_id=magazine.id,
            pickup_date=tomorrow,
            status=ReservationStatus.CANCELLED,
        )

        with patch.object(notifications, "async_session_maker", session_factory):
            result = await notifications._send_pickup_reminders_async(tomorrow, email_service)

        assert result == {
            "pickup_date": tomorrow.isoformat(),
            "sent": 2,
            "failed": 0,
            "status": "completed",
        }
        _, sent_user, sent_magazine = email_service.send_pickup_reminder.await_args.args
        assert sent_user.email == user.email
        assert sent_magazine.title == magazine.title

    @pytest.mark.asyncio
    async def test_failed_send_is_skipped(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_service: MagicMock,
        magazine_factory: Callable[..., Any],
        user_factory: Callable[..., Any],
        reservation_factory: Callable[..., Any],
    ) -> None:
        magazine = await magazine_factory()
        user = await user_factory()
        tomorrow = date.today() + timedelta(days=1)
        await reservation_factory(user_id=user.id, magazine_id=magazine.id, pickup_date=tomorrow)
        await reservation_factory(user_id=user.id, magazine_id=magazine.id, pickup_date=tomorrow)
        email_service.send_pickup_reminder.side_effect = [EmailDeliveryError("down"), None]

        with patch.object(notifications, "async_session_maker", session_factory):
            result = await notifications._send_pickup_reminders_async(tomorrow, email_service)

        assert result["sent"] == 1
        assert result["failed"] == 1

    @pytest.mark.asyncio
    async def test_skipped_without_smtp(self, email_service: MagicMock) -> None:
        email_service.is_configured = False

        result = await notifications._send_pickup_reminders_async(date(2026, 11, 3), email_service)

        assert result["status"] == "skipped"
        email_service.send_pickup_reminder.assert_not_awaited()
