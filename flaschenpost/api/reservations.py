"""Reservation endpoints: create, list and cancel via emailed link."""

import logging
from typing import Any

import jwt
from fastapi import APIRouter, BackgroundTasks, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.config import settings
from flaschenpost.core.deps import DBSession, Mailer
from flaschenpost.core.errors import (
    GENERIC_ERROR_MESSAGE,
    AppError,
    ConflictError,
    InsufficientCopiesError,
    NotFoundError,
    ServerError,
    ServiceUnavailableError,
    ValidationError,
)
from flaschenpost.core.logging_config import current_client_ip
from flaschenpost.core.rate_limit import limiter
from flaschenpost.core.security import decode_cancellation_token
from flaschenpost.models.consent import ConsentType
from flaschenpost.models.magazine import Magazine
from flaschenpost.models.picture_claim import PictureType
from flaschenpost.models.processing_log import DataType, LegalBasis, ProcessingAction
from flaschenpost.models.reservation import Reservation, ReservationStatus
from flaschenpost.models.user import User
from flaschenpost.schemas.common import ApiResponse
from flaschenpost.schemas.reservation import (
    CancellationResult,
    ReservationCreate,
    ReservationCreated,
    ReservationMagazineInfo,
)
from flaschenpost.services.consent_service import ConsentService
from flaschenpost.services.email_service import EmailError, EmailService
from flaschenpost.services.magazine_service import MagazineService
from flaschenpost.services.picture_claim_service import (
    DuplicateClaimError,
    PictureOrderRejectedError,
)
from flaschenpost.services.processing_log_service import ProcessingLogService
from flaschenpost.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _send_confirmation(
    email: EmailService,
    reservation: Reservation,
    user: User,
    magazine: Magazine,
) -> None:
    try:
        await email.send_reservation_confirmation(reservation, user, magazine)
    except EmailError as e:
        logger.error("Failed to send confirmation email: reservation=%s error=%s", reservation.id, e)


async def _send_cancellation(
    email: EmailService,
    reservation: Reservation,
    user: User,
    magazine: Magazine,
) -> None:
    try:
        await email.send_cancellation_confirmation(reservation, user, magazine)
    except EmailError as e:
        logger.error("Failed to send cancellation email: reservation=%s error=%s", reservation.id, e)


def _picture_claims(form: ReservationCreate) -> list[PictureType]:
    claims = []
    if form.order_group_picture:
        claims.append(PictureType.GROUP)
    if form.order_vorschul_picture and form.child_is_vorschueler:
        claims.append(PictureType.VORSCHUL)
    return claims


@router.post(
    "",
    response_model=ApiResponse[ReservationCreated],
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.reservation_rate_limit)
async def create_reservation(
    request: Request,
    data: ReservationCreate,
    db: DBSession,
    email: Mailer,
    background_tasks: BackgroundTasks,
) -> ApiResponse[ReservationCreated]:
    """Reserve copies of a magazine issue for pickup or shipping.

    Rate limited per client IP. The confirmation email is sent after the
    response; a failed send is logged and does not affect the reservation.
    """
    if settings.maintenance_mode or not settings.enable_reservations:
        raise ServiceUnavailableError("Reservations are disabled")

    try:
        return await _create_reservation(request, data, db, email, background_tasks)
    except AppError:
        raise
    except Exception as e:
        logger.exception("Reservation creation error: %s", e)
        await db.rollback()
        await ProcessingLogService(db).log_data_processing(
            action=ProcessingAction.CREATED,
            data_type=DataType.PROCESSING_LOG,
            legal_basis=LegalBasis.LEGITIMATE_INTEREST,
            details={"error": str(e), "endpoint": "/api/reservations", "method": "POST"},
        )
        raise ServerError(
            f"Reservation creation failed: {e}", user_message=GENERIC_ERROR_MESSAGE
        ) from e


async def _create_reservation(
    request: Request,
    data: ReservationCreate,
    db: AsyncSession,
    email: EmailService,
    background_tasks: BackgroundTasks,
) -> ApiResponse[ReservationCreated]:
    magazine = await MagazineService(db).get_magazine_by_id(data.magazine_id)
    if magazine is None or not magazine.is_active:
        raise NotFoundError(
            f"Magazine {data.magazine_id} not found",
            user_message="Die gewählte Magazin-Ausgabe ist nicht verfügbar.",
        )
    if magazine.available_copies < data.quantity:
        raise InsufficientCopiesError(magazine.id, data.quantity, magazine.available_copies)

    service = ReservationService(db)

    if data.wants_pictures:
        validation = await service.picture_claims.validate_picture_order(
            data.email,
            data.order_group_picture,
            data.child_group_name,
            data.order_vorschul_picture,
            data.child_is_vorschueler,
        )
        if not validation.valid:
            raise PictureOrderRejectedError(validation.errors)

    user, created = await service.resolve_user(data)
    consents = ConsentService(db)
    submitted = data.consents.as_dict()
    user_agent = request.headers.get("user-agent")
    if created:
        await consents.record_consent(
            user.id, submitted, ip_address=current_client_ip(), user_agent=user_agent
        )
    else:
        await service.users.touch_activity(user)
        current = await consents.get_current_consents(user.id)
        if any(current.get(ConsentType(k)) is not v for k, v in submitted.items()):
            await consents.record_consent(
                user.id, submitted, ip_address=current_client_ip(), user_agent=user_agent
            )

    reservation = await service.create_reservation(data, user)

    for picture_type in _picture_claims(data):
        try:
            await service.picture_claims.create_claim(
                data.email,
                data.child_group_name or "",
                picture_type,
                data.child_name or "",
                reservation.id,
            )
        except DuplicateClaimError:
            # Another request claimed the picture between validation and insert
            await service.cancel_reservation(reservation.id, user.id)
            raise

    background_tasks.add_task(_send_confirmation, email, reservation, user, magazine)

    return ApiResponse(
        data=ReservationCreated(
            id=reservation.id,
            status=reservation.status,
            expires_at=reservation.expires_at,
            magazine=ReservationMagazineInfo(
                title=magazine.title, issue_number=magazine.issue_number
            ),
        ),
        message="Reservierung erfolgreich erstellt!",
    )


@router.get("", response_model=ApiResponse[list[Any]])
async def list_reservations(db: DBSession) -> ApiResponse[list[Any]]:
    """Reservation lookup needs an authenticated user; anonymous callers get nothing."""
    await ProcessingLogService(db).log_data_processing(
        action=ProcessingAction.ACCESSED,
        data_type=DataType.RESERVATION,
        legal_basis=LegalBasis.LEGITIMATE_INTEREST,
        details={"endpoint": "/api/reservations", "method": "GET"},
    )
    return ApiResponse(data=[], message="Authentication required for this endpoint")


@router.get("/cancel", response_model=ApiResponse[CancellationResult])
async def cancel_reservation(
    db: DBSession,
    email: Mailer,
    background_tasks: BackgroundTasks,
    token: str = Query(..., min_length=1),
) -> ApiResponse[CancellationResult]:
    """Cancel a reservation from the signed link in its confirmation email."""
    try:
        reservation_id, user_id = decode_cancellation_token(token)
    except (jwt.InvalidTokenError, ValueError) as e:
        raise ValidationError(
            f"Invalid cancellation token: {e}",
            user_message="Der Stornierungslink ist ungültig oder abgelaufen.",
        ) from e

    service = ReservationService(db)
    reservation = await service.get_reservation(reservation_id)
    if reservation is None or reservation.user_id != user_id:
        raise NotFoundError(
            f"Reservation {reservation_id} not found",
            user_message="Die Reservierung wurde nicht gefunden.",
        )

    if not await service.cancel_reservation(reservation_id, user_id):
        raise ConflictError(
            f"Reservation {reservation_id} is {reservation.status.value}",
            user_message="Diese Reservierung kann nicht mehr storniert werden.",
        )

    background_tasks.add_task(
        _send_cancellation, email, reservation, reservation.user, reservation.magazine
    )

    return ApiResponse(
        data=CancellationResult(reservation_id=reservation_id, status=ReservationStatus.CANCELLED),
        message="Reservierung erfolgreich storniert.",
    )
