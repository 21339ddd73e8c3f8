"""Tests for UserService."""

from collections.abc import Callable
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.errors import StorageError
from flaschenpost.models.base import as_utc, utcnow
from flaschenpost.models.processing_log import DataProcessingLog, ProcessingAction
from flaschenpost.models.user import User
from flaschenpost.schemas.reservation import AddressInput
from flaschenpost.schemas.user import UserCreate, UserUpdates
from flaschenpost.services.user_service import UserService


def _user_create(**overrides: Any) -> UserCreate:
    data: dict[str, Any] = {
        "email": "Anna.Schmidt@Example.com",
        "first_name": "Anna",
        "last_name": "Schmidt",
        "consent_version": "1.0",
    }
    data.update(overrides)
    return UserCreate(**data)


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_sets_retention_deadline_and_lowercases_email(
        self, db_session: AsyncSession
    ) -> None:
        user = await UserService(db_session).create_user(_user_create())

        assert user.email == "anna.schmidt@example.com"
        deadline = as_utc(user.data_retention_until) - utcnow()
        assert timedelta(days=364) < deadline <= timedelta(days=365)

    @pytest.mark.asyncio
    async def test_copies_address(self, db_session: AsyncSession) -> None:
        address = AddressInput(
            street="Leopoldstraße",
            house_number="12a",
            postal_code="80802",
            city="München",
            country="de",
        )
        user = await UserService(db_session).create_user(_user_create(address=address))

        assert user.street == "Leopoldstraße"
        assert user.country == "DE"

    @pytest.mark.asyncio
    async def test_logs_creation(self, db_session: AsyncSession) -> None:
        user = await UserService(db_session).create_user(_user_create())

        logs = (await db_session.execute(select(DataProcessingLog))).scalars().all()
        assert [log.action for log in logs] == [ProcessingAction.CREATED]
        assert logs[0].user_id == user.id

    @pytest.mark.asyncio
    async def test_duplicate_email_is_storage_error(
        self, db_session: AsyncSession, user_factory: Callable[..., Any]
    ) -> None:
        await user_factory(email="anna.schmidt@example.com")

        with pytest.raises(StorageError, match="Failed to create user"):
            await UserService(db_session).create_user(_user_create())


class TestGetOrCreateUser:
    @pytest.mark.asyncio
    async def test_creates_once(self, db_session: AsyncSession) -> None:
        service = UserService(db_session)

        first, created_first = await service.get_or_create_user(_user_create())
        second, created_second = await service.get_or_create_user(_user_create())

        assert created_first is True
        assert created_second is False
        assert first.id == second.id
        count = await db_session.scalar(select(func.count()).select_from(User))
        assert count == 1

    @pytest.mark.asyncio
    async def test_lost_race_rereads_existing_user(
        self, db_session: AsyncSession, user_factory: Callable[..., Any]
    ) -> None:
        existing = await user_factory(email="anna.schmidt@example.com")
        service = UserService(db_session)

        # The lookup misses, as it would when another request inserts concurrently
        with patch.object(
            service,
            "get_user_by_email",
            new=AsyncMock(side_effect=[None, existing]),
        ):
            user, created = await service.get_or_create_user(_user_create())

        assert created is False
        assert user.id == existing.id


class TestUpdateUser:
    @pytest.mark.asyncio
    async def test_updates_only_rectifiable_fields(
        self, db_session: AsyncSession, user_factory: Callable[..., Any]
    ) -> None:
        user = await user_factory()
        updates = UserUpdates(last_name="Müller", phone="+49 171 2345678").to_updates()
        updates["email"] = "other@example.com"

        updated = await UserService(db_session).update_user(user.id, updates)

        assert updated is not None
        assert updated.last_name == "Müller"
        assert updated.phone == "+491712345678"
        assert updated.email == "anna.schmidt@example.com"
        assert updated.first_name == "Anna"

    @pytest.mark.asyncio
    async def test_logs_changed_fields(
        self, db_session: AsyncSession, user_factory: Callable[..., Any]
    ) -> None:
        user = await user_factory()
        await UserService(db_session).update_user(user.id, {"first_name": "Annika"})

        log = (
            await db_session.execute(
                select(DataProcessingLog).where(
                    DataProcessingLog.action == ProcessingAction.UPDATED
                )
            )
        ).scalar_one()
        assert log.details == {"fields": ["first_name"]}

    @pytest.mark.asyncio
    async def test_unknown_user_returns_none(self, db_session: AsyncSession) -> None:
        assert await UserService(db_session).update_user(uuid4(), {"first_name": "X"}) is None
