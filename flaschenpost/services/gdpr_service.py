"""Data-subject rights and retention: export, erasure, eligibility, cleanup."""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.config import settings
from flaschenpost.core.errors import NotFoundError, StorageError
from flaschenpost.models.base import utcnow
from flaschenpost.models.consent import ConsentRecord
from flaschenpost.models.magazine import Magazine
from flaschenpost.models.picture_claim import PictureClaim
from flaschenpost.models.processing_log import (
    DataProcessingLog,
    DataType,
    LegalBasis,
    ProcessingAction,
)
from flaschenpost.models.reservation import ACTIVE_STATUSES, Reservation, ReservationStatus
from flaschenpost.models.user import User
from flaschenpost.schemas.gdpr import CleanupResult, ConsentRecordResponse, DeletionEligibility
from flaschenpost.schemas.reservation import ReservationResponse
from flaschenpost.schemas.user import UserResponse
from flaschenpost.services.consent_service import ConsentService
from flaschenpost.services.processing_log_service import ProcessingLogService
from flaschenpost.services.reservation_service import ReservationService
from flaschenpost.services.user_service import UserService

logger = logging.getLogger(__name__)

RETENTION_EXPIRED_REASON = "retention_period_expired"


def years_before(moment: datetime, years: int) -> datetime:
    """Same calendar day ``years`` earlier; 29 February falls back to the 28th."""
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        return moment.replace(year=moment.year - years, day=28)


class GDPRService:
    """Implements export (Art. 20), erasure (Art. 17) and storage limitation."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.users = UserService(db)
        self.reservations = ReservationService(db)
        self.consents = ConsentService(db)
        self.processing_log = ProcessingLogService(db)

    async def export_user_data(self, user_id: UUID) -> dict[str, Any]:
        """Everything stored about a user, camelCase, JSON-ready.

        Raises:
            NotFoundError: no such user
        """
        user = await self.users.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(
                f"User {user_id} not found",
                user_message="Benutzer wurde nicht gefunden.",
            )

        reservations = await self.reservations.get_user_reservations(user_id)
        consents = await self.consents.get_user_consents(user_id)

        reservation_data = []
        for reservation in reservations:
            item = ReservationResponse.model_validate(reservation).model_dump(
                mode="json", by_alias=True
            )
            item["magazine"] = {
                "title": reservation.magazine.title,
                "issueNumber": reservation.magazine.issue_number,
            }
            reservation_data.append(item)

        export = {
            "exportDate": utcnow().isoformat(),
            "userData": UserResponse.model_validate(user).model_dump(mode="json", by_alias=True),
            "reservations": reservation_data,
            "consents": [
                ConsentRecordResponse.model_validate(c).model_dump(mode="json", by_alias=True)
                for c in consents
            ],
        }

        await self.processing_log.log_data_processing(
            user_id=user_id,
            action=ProcessingAction.EXPORTED,
            data_type=DataType.USER_DATA,
            legal_basis=LegalBasis.USER_REQUEST,
            details={
                "reservations": len(reservation_data),
                "consents": len(export["consents"]),
            },
        )
        return export

    async def delete_user_data(self, user_id: UUID, reason: str = "user_request") -> dict[str, Any]:
        """Erase a user and everything attached to it.

        Processing-log entries survive with their user reference removed.
        Copies held by still-active reservations go back to their magazines.
        Returns the export taken just before erasure.

        Raises:
            NotFoundError: no such user
            StorageError: the erasure failed and was rolled back
        """
        export = await self.export_user_data(user_id)

        try:
            reservations = (
                (await self.db.execute(select(Reservation).where(Reservation.user_id == user_id)))
                .scalars()
                .all()
            )
            reservation_ids = [r.id for r in reservations]

            for reservation in reservations:
                if reservation.status in ACTIVE_STATUSES:
                    await self.db.execute(
                        update(Magazine)
                        .where(Magazine.id == reservation.magazine_id)
                        .values(available_copies=Magazine.available_copies + reservation.quantity)
                        .execution_options(synchronize_session=False)
                    )

            if reservation_ids:
                await self.db.execute(
                    delete(PictureClaim).where(PictureClaim.reservation_id.in_(reservation_ids))
                )
            await self.db.execute(delete(ConsentRecord).where(ConsentRecord.user_id == user_id))
            await self.db.execute(delete(Reservation).where(Reservation.user_id == user_id))
            await self.db.execute(
                update(DataProcessingLog)
                .where(DataProcessingLog.user_id == user_id)
                .values(user_id=None, details={"anonymized": True, "reason": reason})
            )
            await self.db.execute(delete(User).where(User.id == user_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to delete user: {e}") from e

        logger.info("User data deleted: user=%s reason=%s", user_id, reason)
        await self.processing_log.log_data_processing(
            action=ProcessingAction.DELETED,
            data_type=DataType.USER_DATA,
            legal_basis=LegalBasis.USER_REQUEST,
            details={"originalUserId": str(user_id), "reason": reason},
        )
        return export

    async def check_deletion_eligibility(self, user_id: UUID) -> DeletionEligibility:
        """A user can be erased once no reservation is pending or confirmed."""
        reservations = await self.reservations.get_user_reservations(user_id)
        active = [r for r in reservations if r.status in ACTIVE_STATUSES]
        eligibility = DeletionEligibility(
            can_delete=not active,
            active_reservations=len(active),
            total_reservations=len(reservations),
        )
        if active:
            eligibility.reasons.append("Aktive Reservierungen vorhanden")
        return eligibility

    async def expire_reservations(self) -> int:
        """Mark pending reservations past their hold as expired and release their copies."""
        now = utcnow()
        try:
            expired = (
                (
                    await self.db.execute(
                        select(Reservation).where(
                            Reservation.status == ReservationStatus.PENDING,
                            Reservation.expires_at < now,
                        )
                    )
                )
                .scalars()
                .all()
            )
            for reservation in expired:
                reservation.status = ReservationStatus.EXPIRED
                await self.db.execute(
                    update(Magazine)
                    .where(Magazine.id == reservation.magazine_id)
                    .values(available_copies=Magazine.available_copies + reservation.quantity)
                    .execution_options(synchronize_session=False)
                )
            if expired:
                await self.db.execute(
                    delete(PictureClaim).where(
                        PictureClaim.reservation_id.in_([r.id for r in expired])
                    )
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to expire reservations: {e}") from e
        return len(expired)

    async def cleanup_expired_data(self) -> CleanupResult:
        """Apply the retention policy.

        Expires stale pending reservations, erases users past their retention
        deadline one after another, and purges processing-log entries older
        than the log retention period.
        """
        result = CleanupResult()
        result.expired_reservations = await self.expire_reservations()

        now = utcnow()
        try:
            expired_user_ids = list(
                (await self.db.execute(select(User.id).where(User.data_retention_until < now)))
                .scalars()
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to find expired users: {e}") from e

        for user_id in expired_user_ids:
            try:
                await self.delete_user_data(user_id, RETENTION_EXPIRED_REASON)
            except (NotFoundError, StorageError):
                logger.exception("Retention deletion failed for user %s", user_id)
                continue
            result.deleted_users += 1

        cutoff = years_before(now, settings.processing_log_retention_years)
        try:
            purged = await self.db.execute(
                delete(DataProcessingLog).where(DataProcessingLog.timestamp < cutoff)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to purge processing logs: {e}") from e
        result.cleaned_logs = purged.rowcount or 0

        logger.info(
            "Retention cleanup finished: expired_reservations=%d deleted_users=%d cleaned_logs=%d",
            result.expired_reservations,
            result.deleted_users,
            result.cleaned_logs,
        )
        return result
