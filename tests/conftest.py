"""Pytest configuration and fixtures for the Flaschenpost API test suite.

Provides:
- A fresh SQLite database (aiosqlite) per test, schema created from the models
- Async test clients with the DB session and email service overridden
- Disabled rate limiting
- Model factory fixtures for Magazine, User, Reservation and ConsentRecord
"""

from collections.abc import AsyncGenerator, Callable
from datetime import date, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from flaschenpost.core.database import get_async_session
from flaschenpost.core.deps import get_db, get_email_service
from flaschenpost.core.rate_limit import limiter
from flaschenpost.main import app
from flaschenpost.models.base import Base, utcnow
from flaschenpost.models.consent import ConsentRecord, ConsentType
from flaschenpost.models.magazine import Magazine
from flaschenpost.models.reservation import DeliveryMethod, Reservation, ReservationStatus
from flaschenpost.models.user import User
from flaschenpost.services.email_service import EmailService
from tests.payloads import TEST_EMAIL

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False


# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory bound to a new SQLite file with all tables created.

    A file (not ``:memory:``) so that separate sessions, as used by the app
    and by concurrency tests, see the same data. NullPool keeps connections
    from outliving the test's event loop.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Database session for test setup and service tests."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Email mock
# ---------------------------------------------------------------------------


@pytest.fixture
def email_service() -> MagicMock:
    """EmailService stand-in whose send methods are AsyncMocks."""
    mock = MagicMock(spec=EmailService)
    mock.is_configured = True
    mock.send_reservation_confirmation = AsyncMock()
    mock.send_cancellation_confirmation = AsyncMock()
    mock.send_pickup_reminder = AsyncMock()
    return mock


# ---------------------------------------------------------------------------
# Client (overrides DB and email)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    email_service: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with the database and email service overridden."""

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_email_service] = lambda: email_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def magazine_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Magazine instances."""

    async def _create(
        *,
        title: str = "Flaschenpost",
        issue_number: str = "2026-1",
        total_copies: int = 50,
        available_copies: int | None = None,
        is_active: bool = True,
        publish_date: date | None = None,
    ) -> Magazine:
        magazine = Magazine(
            title=title,
            issue_number=issue_number,
            publish_date=publish_date or date(2026, 3, 1),
            description="Das Magazin des Kindergartens",
            total_copies=total_copies,
            available_copies=total_copies if available_copies is None else available_copies,
            is_active=is_active,
        )
        db_session.add(magazine)
        await db_session.commit()
        await db_session.refresh(magazine)
        return magazine

    return _create


@pytest.fixture
def user_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates User instances."""

    async def _create(
        *,
        email: str = TEST_EMAIL,
        first_name: str = "Anna",
        last_name: str = "Schmidt",
        retention_days: int = 365,
    ) -> User:
        now = utcnow()
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            consent_version="1.0",
            consent_timestamp=now,
            data_retention_until=now + timedelta(days=retention_days),
            last_activity=now,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def reservation_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Reservation rows directly (copy counters untouched)."""

    async def _create(
        *,
        user_id: UUID,
        magazine_id: UUID,
        quantity: int = 1,
        status: ReservationStatus = ReservationStatus.PENDING,
        expires_in_days: int = 7,
        pickup_date: date | None = None,
    ) -> Reservation:
        now = utcnow()
        reservation = Reservation(
            user_id=user_id,
            magazine_id=magazine_id,
            quantity=quantity,
            status=status,
            reservation_date=now,
            delivery_method=DeliveryMethod.PICKUP,
            pickup_location="Kindergarten Leuchtturm",
            pickup_date=pickup_date,
            expires_at=now + timedelta(days=expires_in_days),
        )
        db_session.add(reservation)
        await db_session.commit()
        await db_session.refresh(reservation)
        return reservation

    return _create


@pytest.fixture
def consent_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates ConsentRecord instances."""

    async def _create(
        *,
        user_id: UUID,
        consent_type: ConsentType = ConsentType.ESSENTIAL,
        consent_given: bool = True,
    ) -> ConsentRecord:
        record = ConsentRecord(
            user_id=user_id,
            consent_type=consent_type,
            consent_given=consent_given,
            consent_version="1.0",
            timestamp=utcnow(),
        )
        db_session.add(record)
        await db_session.commit()
        await db_session.refresh(record)
        return record

    return _create

