"""User records: creation, lookup and rectification."""

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.config import settings
from flaschenpost.core.errors import StorageError
from flaschenpost.models.base import utcnow
from flaschenpost.models.processing_log import DataType, LegalBasis, ProcessingAction
from flaschenpost.models.user import User
from flaschenpost.schemas.user import UserCreate
from flaschenpost.services.processing_log_service import ProcessingLogService

logger = logging.getLogger(__name__)

RECTIFIABLE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "phone",
        "street",
        "house_number",
        "address_line2",
        "postal_code",
        "city",
        "country",
    }
)


class UserService:
    """Data access for ``users``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.processing_log = ProcessingLogService(db)

    async def create_user(self, data: UserCreate) -> User:
        """Insert a user with its retention deadline.

        Raises:
            StorageError: the insert failed, including an email that already exists
        """
        now = utcnow()
        address = data.address
        user = User(
            email=data.email.strip().lower(),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            street=address.street if address else None,
            house_number=address.house_number if address else None,
            address_line2=address.address_line2 if address else None,
            postal_code=address.postal_code if address else None,
            city=address.city if address else None,
            country=address.country if address else None,
            consent_version=data.consent_version or settings.consent_version,
            consent_timestamp=now,
            data_retention_until=now + timedelta(days=settings.data_retention_days),
            last_activity=now,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to create user: {e}") from e

        logger.info("User created: id=%s", user.id)
        await self.processing_log.log_data_processing(
            user_id=user.id,
            action=ProcessingAction.CREATED,
            data_type=DataType.USER_DATA,
            legal_basis=LegalBasis.CONSENT,
            details={"source": "reservation"},
        )
        return user

    async def get_or_create_user(self, data: UserCreate) -> tuple[User, bool]:
        """Return ``(user, created)`` for the email in ``data``.

        Two requests for a new email can both miss the lookup; the loser of the
        unique-constraint race re-reads the winner's row.
        """
        user = await self.get_user_by_email(data.email)
        if user is not None:
            return user, False
        try:
            return await self.create_user(data), True
        except StorageError:
            user = await self.get_user_by_email(data.email)
            if user is None:
                raise
            logger.info("Lost user creation race, reusing user %s", user.id)
            return user, False

    async def get_user_by_email(self, email: str) -> User | None:
        try:
            result = await self.db.execute(
                select(User).where(User.email == email.strip().lower())
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}") from e
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        try:
            return await self.db.get(User, user_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}") from e

    async def touch_activity(self, user: User) -> None:
        """Record that the user was active just now."""
        user.last_activity = utcnow()
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning("Failed to update user activity for %s: %s", user.id, e)

    async def update_user(self, user_id: UUID, updates: dict[str, Any]) -> User | None:
        """Apply a rectification request; unknown fields are ignored.

        Returns the updated user, or None when the user does not exist.
        """
        user = await self.get_user_by_id(user_id)
        if user is None:
            return None

        changed = sorted(k for k in updates if k in RECTIFIABLE_FIELDS)
        for field in changed:
            setattr(user, field, updates[field])
        user.last_activity = utcnow()
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to update user: {e}") from e

        await self.processing_log.log_data_processing(
            user_id=user.id,
            action=ProcessingAction.UPDATED,
            data_type=DataType.USER_DATA,
            legal_basis=LegalBasis.USER_REQUEST,
            details={"fields": changed},
        )
        return user
