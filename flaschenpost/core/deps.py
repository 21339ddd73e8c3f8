"""Dependency injection for FastAPI routes."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.database import get_async_session
from flaschenpost.services.email_service import EmailService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield the request's database session."""
    async for session in get_async_session():
        yield session


def get_email_service() -> EmailService:
    """Email notifier built from the process settings."""
    return EmailService()


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]

# Email notifier dependency (overridden in tests)
Mailer = Annotated[EmailService, Depends(get_email_service)]
