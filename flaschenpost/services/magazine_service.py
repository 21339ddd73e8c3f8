"""Magazine catalog queries."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.errors import StorageError
from flaschenpost.models.magazine import Magazine


class MagazineService:
    """Data access for ``magazines``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_active_magazines(self) -> list[Magazine]:
        """Active issues that still have copies, newest first."""
        stmt = (
            select(Magazine)
            .where(
                Magazine.is_active == True,  # noqa: E712
                Magazine.available_copies > 0,
            )
            .order_by(Magazine.publish_date.desc())
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get magazines: {e}") from e
        return list(result.scalars().all())

    async def get_magazine_by_id(self, magazine_id: UUID) -> Magazine | None:
        try:
            return await self.db.get(Magazine, magazine_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get magazine: {e}") from e
