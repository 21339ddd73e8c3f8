"""Reservation lifecycle: create, list, cancel."""

import logging
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from flaschenpost.core.config import settings
from flaschenpost.core.errors import InsufficientCopiesError, NotFoundError, StorageError
from flaschenpost.models.base import utcnow
from flaschenpost.models.magazine import Magazine
from flaschenpost.models.processing_log import DataType, LegalBasis, ProcessingAction
from flaschenpost.models.reservation import (
    ACTIVE_STATUSES,
    DeliveryMethod,
    Reservation,
    ReservationStatus,
)
from flaschenpost.models.user import User
from flaschenpost.schemas.reservation import ReservationCreate
from flaschenpost.schemas.user import UserCreate
from flaschenpost.services.picture_claim_service import PictureClaimService
from flaschenpost.services.processing_log_service import ProcessingLogService
from flaschenpost.services.user_service import UserService

logger = logging.getLogger(__name__)


class ReservationService:
    """Data access for ``reservations`` and the magazine copy counters."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.users = UserService(db)
        self.picture_claims = PictureClaimService(db)
        self.processing_log = ProcessingLogService(db)

    async def resolve_user(self, form: ReservationCreate) -> tuple[User, bool]:
        """Return ``(user, created)`` for the form's email address."""
        is_shipping = form.delivery_method == DeliveryMethod.SHIPPING
        return await self.users.get_or_create_user(
            UserCreate(
                email=form.email,
                first_name=form.first_name,
                last_name=form.last_name,
                phone=form.phone,
                address=form.address if is_shipping else None,
                consent_version=settings.consent_version,
            )
        )

    async def create_reservation(
        self,
        form: ReservationCreate,
        user: User | None = None,
    ) -> Reservation:
        """Store a reservation and take its copies off the magazine.

        Without ``user`` the user is looked up or created first, in its own
        commit. The copy decrement and the reservation insert then share one
        transaction; the decrement only matches while enough copies remain.

        Raises:
            NotFoundError: the magazine does not exist
            InsufficientCopiesError: fewer copies left than requested
            StorageError: the insert or the ``reservation_created`` log failed
        """
        is_shipping = form.delivery_method == DeliveryMethod.SHIPPING
        if user is None:
            user, _ = await self.resolve_user(form)

        now = utcnow()
        address = form.address if is_shipping else None
        reservation = Reservation(
            user_id=user.id,
            magazine_id=form.magazine_id,
            quantity=form.quantity,
            status=ReservationStatus.PENDING,
            reservation_date=now,
            delivery_method=form.delivery_method,
            pickup_location=None if is_shipping else form.pickup_location,
            pickup_date=None if is_shipping else form.pickup_date,
            shipping_street=address.street if address else None,
            shipping_house_number=address.house_number if address else None,
            shipping_address_line2=address.address_line2 if address else None,
            shipping_postal_code=address.postal_code if address else None,
            shipping_city=address.city if address else None,
            shipping_country=address.country if address else None,
            payment_method=form.payment_method,
            notes=form.notes,
            order_group_picture=form.order_group_picture,
            child_group_name=form.child_group_name,
            order_vorschul_picture=form.order_vorschul_picture,
            child_is_vorschueler=form.child_is_vorschueler,
            child_name=form.child_name,
            consent_reference=f"consent-{user.id}-{int(now.timestamp() * 1000)}",
            expires_at=now + timedelta(days=settings.reservation_hold_days),
        )

        try:
            result = await self.db.execute(
                update(Magazine)
                .where(
                    Magazine.id == form.magazine_id,
                    Magazine.available_copies >= form.quantity,
                )
                .values(available_copies=Magazine.available_copies - form.quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                await self._raise_unavailable(form.magazine_id, form.quantity)
            self.db.add(reservation)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to create reservation: {e}") from e

        logger.info(
            "Reservation created: id=%s user=%s magazine=%s quantity=%d method=%s",
            reservation.id,
            user.id,
            form.magazine_id,
            form.quantity,
            form.delivery_method.value,
        )

        await self.processing_log.log_data_processing(
            user_id=user.id,
            action=ProcessingAction.RESERVATION_CREATED,
            data_type=DataType.RESERVATION,
            legal_basis=LegalBasis.CONSENT,
            details={
                "reservationId": str(reservation.id),
                "magazineId": str(form.magazine_id),
                "quantity": form.quantity,
            },
            strict=True,
        )
        return reservation

    async def _raise_unavailable(self, magazine_id: UUID, requested: int) -> None:
        magazine = await self.db.get(Magazine, magazine_id, populate_existing=True)
        if magazine is None:
            raise NotFoundError(
                f"Magazine {magazine_id} not found",
                user_message="Die gewählte Magazin-Ausgabe ist nicht verfügbar.",
            )
        raise InsufficientCopiesError(magazine_id, requested, magazine.available_copies)

    async def get_user_reservations(self, user_id: UUID) -> list[Reservation]:
        """All reservations of a user with their magazine, newest first."""
        stmt = (
            select(Reservation)
            .options(selectinload(Reservation.magazine))
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.created_at.desc())
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get reservations: {e}") from e
        return list(result.scalars().all())

    async def get_reservation(self, reservation_id: UUID) -> Reservation | None:
        stmt = (
            select(Reservation)
            .options(selectinload(Reservation.magazine), selectinload(Reservation.user))
            .where(Reservation.id == reservation_id)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get reservation: {e}") from e
        return result.scalar_one_or_none()

    async def cancel_reservation(self, reservation_id: UUID, user_id: UUID) -> bool:
        """Cancel an active reservation owned by ``user_id``.

        Restores the magazine's copies and releases any picture claims.
        Returns False when there is no active reservation to cancel.
        """
        stmt = select(Reservation).where(
            Reservation.id == reservation_id,
            Reservation.user_id == user_id,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        try:
            reservation = (await self.db.execute(stmt)).scalar_one_or_none()
            if reservation is None:
                return False

            reservation.status = ReservationStatus.CANCELLED
            await self.db.execute(
                update(Magazine)
                .where(Magazine.id == reservation.magazine_id)
                .values(available_copies=Magazine.available_copies + reservation.quantity)
                .execution_options(synchronize_session=False)
            )
            await self.picture_claims.delete_claim(reservation.id, commit=False)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to cancel reservation: {e}") from e

        logger.info("Reservation cancelled: id=%s user=%s", reservation_id, user_id)
        await self.processing_log.log_data_processing(
            user_id=user_id,
            action=ProcessingAction.RESERVATION_CANCELLED,
            data_type=DataType.RESERVATION,
            legal_basis=LegalBasis.USER_REQUEST,
            details={"reservationId": str(reservation_id), "quantity": reservation.quantity},
        )
        return True

    async def get_pickups_due(self, pickup_date: date) -> list[Reservation]:
        """Active pickup reservations scheduled for ``pickup_date``."""
        stmt = (
            select(Reservation)
            .options(selectinload(Reservation.magazine), selectinload(Reservation.user))
            .where(
                Reservation.delivery_method == DeliveryMethod.PICKUP,
                Reservation.pickup_date == pickup_date,
                Reservation.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Reservation.created_at)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get due pickups: {e}") from e
        return list(result.scalars().all())
