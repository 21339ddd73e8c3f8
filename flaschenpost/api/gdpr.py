"""Data-subject-rights endpoints: consent, export, erasure, rectification, audit."""

import json
from uuid import UUID

from fastapi import APIRouter, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.config import settings
from flaschenpost.core.deps import DBSession
from flaschenpost.core.errors import (
    ActiveReservationsError,
    NotFoundError,
    ValidationError,
)
from flaschenpost.core.logging_config import current_client_ip
from flaschenpost.models.base import utcnow
from flaschenpost.models.consent import ConsentType
from flaschenpost.models.processing_log import DataType, LegalBasis, ProcessingAction
from flaschenpost.schemas.common import ApiResponse
from flaschenpost.schemas.gdpr import (
    ConsentRecordResponse,
    ConsentRequest,
    ConsentWithdrawRequest,
    DeletionDetails,
    DeletionEligibility,
    DeletionRequest,
    DeletionResponse,
    EligibilityRequest,
    ExportRequest,
    ProcessingLogRequest,
    RectificationRequest,
)
from flaschenpost.schemas.user import UserResponse
from flaschenpost.services.consent_service import ConsentService
from flaschenpost.services.gdpr_service import GDPRService
from flaschenpost.services.processing_log_service import ProcessingLogService
from flaschenpost.services.user_service import UserService

router = APIRouter()

AFFECTED_DATA_TYPES = [
    "Persönliche Daten",
    "Reservierungen",
    "Einwilligungen",
    "Verarbeitungsprotokoll (anonymisiert)",
]


async def _require_user(db: AsyncSession, user_id: UUID) -> None:
    if await UserService(db).get_user_by_id(user_id) is None:
        raise NotFoundError(
            f"User {user_id} not found",
            user_message="Benutzer wurde nicht gefunden.",
        )


# --- Consent (Art. 7) ---


@router.post("/consent", response_model=ApiResponse[None])
async def record_consent(
    request: Request,
    data: ConsentRequest,
    db: DBSession,
) -> ApiResponse[None]:
    """Store consent choices; without a user id they are only audit-logged."""
    ip_address = data.ip_address or current_client_ip()
    user_agent = data.user_agent or request.headers.get("user-agent")
    choices = data.consents.model_dump()

    if data.user_id is None:
        await ProcessingLogService(db).log_data_processing(
            action=ProcessingAction.CONSENT_GIVEN,
            data_type=DataType.CONSENT,
            legal_basis=LegalBasis.CONSENT,
            ip_address=ip_address,
            details={
                "consents": choices,
                "anonymous": True,
                "timestamp": data.timestamp.isoformat(),
            },
        )
        return ApiResponse(message="Anonyme Einwilligung erfolgreich gespeichert.")

    await _require_user(db, data.user_id)
    await ConsentService(db).record_consent(
        data.user_id, choices, ip_address=ip_address, user_agent=user_agent
    )
    return ApiResponse(message="Einwilligung erfolgreich gespeichert.")


@router.get("/consent", response_model=ApiResponse[list[ConsentRecordResponse]])
async def list_consents(
    db: DBSession,
    user_id: UUID = Query(..., alias="userId"),
) -> ApiResponse[list[ConsentRecordResponse]]:
    """Consent history of a user, newest first."""
    records = await ConsentService(db).get_user_consents(user_id)
    return ApiResponse(data=[ConsentRecordResponse.model_validate(r) for r in records])


@router.post("/consent/withdraw", response_model=ApiResponse[ConsentRecordResponse])
@router.delete("/consent", response_model=ApiResponse[ConsentRecordResponse])
async def withdraw_consent(
    data: ConsentWithdrawRequest,
    db: DBSession,
) -> ApiResponse[ConsentRecordResponse]:
    """Withdraw one optional consent category."""
    if data.consent_type == ConsentType.ESSENTIAL:
        raise ValidationError(
            "Cannot withdraw essential consent",
            user_message="Grundlegende Einwilligung kann nicht widerrufen werden.",
        )

    await _require_user(db, data.user_id)
    record = await ConsentService(db).withdraw_consent(data.user_id, data.consent_type)
    return ApiResponse(
        data=ConsentRecordResponse.model_validate(record),
        message=f"{data.consent_type.value} Einwilligung erfolgreich widerrufen.",
    )


# --- Export (Art. 20) ---


@router.post("/export-data")
async def export_data(data: ExportRequest, db: DBSession) -> Response:
    """Download everything stored about a user as a JSON attachment."""
    exported = await GDPRService(db).export_user_data(data.user_id)

    now = utcnow()
    document = {
        "exportInfo": {
            "exportDate": now.isoformat(),
            "dataController": settings.data_controller,
            "contactEmail": settings.privacy_contact_email,
            "purpose": "GDPR Article 20 - Right to data portability",
            "format": "JSON",
            "language": "de-DE",
        },
        "personalData": exported["userData"],
        "reservations": exported["reservations"],
        "consents": exported["consents"],
        "legalNotice": {
            "de": (
                "Diese Daten wurden auf Ihre Anfrage gemäß Art. 20 DSGVO exportiert. "
                "Die Daten werden in einem strukturierten, gängigen und "
                "maschinenlesbaren Format bereitgestellt."
            ),
            "en": (
                "This data has been exported upon your request under Article 20 GDPR. "
                "The data is provided in a structured, commonly used and "
                "machine-readable format."
            ),
        },
    }
    body = json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")
    filename = f"datenexport-{data.user_id}-{now.date().isoformat()}.json"
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# --- Erasure (Art. 17) ---


@router.delete("/delete-data", response_model=DeletionResponse)
async def delete_data(data: DeletionRequest, db: DBSession) -> DeletionResponse:
    """Erase a user once no reservation is pending or confirmed."""
    service = GDPRService(db)
    await _require_user(db, data.user_id)

    eligibility = await service.check_deletion_eligibility(data.user_id)
    if not eligibility.can_delete:
        raise ActiveReservationsError(
            f"User {data.user_id} has {eligibility.active_reservations} active reservations",
            context={"activeReservationsCount": eligibility.active_reservations},
        )

    await service.delete_user_data(data.user_id, data.reason)
    return DeletionResponse(
        message="Alle Ihre Daten wurden erfolgreich gelöscht.",
        details=DeletionDetails(
            deletion_timestamp=utcnow(),
            reason=data.reason,
            affected_data_types=AFFECTED_DATA_TYPES,
        ),
    )


@router.post("/delete-data", response_model=ApiResponse[DeletionEligibility])
async def check_deletion_eligibility(
    data: EligibilityRequest,
    db: DBSession,
) -> ApiResponse[DeletionEligibility]:
    """Report whether erasure is currently possible and why not."""
    eligibility = await GDPRService(db).check_deletion_eligibility(data.user_id)
    return ApiResponse(
        data=eligibility,
        message="Löschung ist möglich." if eligibility.can_delete else "Löschung derzeit nicht möglich.",
    )


# --- Rectification (Art. 16) ---


@router.patch("/rectify-data", response_model=ApiResponse[UserResponse])
async def rectify_data(data: RectificationRequest, db: DBSession) -> ApiResponse[UserResponse]:
    """Correct name, phone number or postal address."""
    user = await UserService(db).update_user(data.user_id, data.updates.to_updates())
    if user is None:
        raise NotFoundError(
            f"User {data.user_id} not found",
            user_message="Benutzer wurde nicht gefunden.",
        )
    return ApiResponse(
        data=UserResponse.model_validate(user),
        message="Ihre Daten wurden erfolgreich aktualisiert.",
    )


# --- Records of processing (Art. 30) ---


@router.post("/log-processing", response_model=ApiResponse[None])
async def log_processing(data: ProcessingLogRequest, db: DBSession) -> ApiResponse[None]:
    """Append a client-reported processing-log entry."""
    if data.user_id is not None:
        await _require_user(db, data.user_id)

    await ProcessingLogService(db).log_data_processing(
        user_id=data.user_id,
        action=data.action,
        data_type=data.data_type,
        legal_basis=data.legal_basis,
        processor_id=data.processor_id,
        details=data.details,
        strict=True,
    )
    return ApiResponse(message="Verarbeitung protokolliert.")
