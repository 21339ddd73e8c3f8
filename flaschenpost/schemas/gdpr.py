"""Pydantic schemas for data-subject-rights endpoints."""

import json
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field, field_validator

from flaschenpost.models.consent import ConsentType
from flaschenpost.models.processing_log import DataType, LegalBasis, ProcessingAction
from flaschenpost.schemas.common import ApiResponse, BaseSchema
from flaschenpost.schemas.user import UserUpdates


class ConsentChoices(BaseSchema):
    """All four consent categories, as sent by the consent banner."""

    essential: bool
    functional: bool
    analytics: bool
    marketing: bool


class ConsentRequest(BaseSchema):
    """Consent submission; without ``user_id`` it is only audit-logged."""

    user_id: UUID | None = None
    consents: ConsentChoices
    timestamp: datetime
    ip_address: str | None = Field(default=None, max_length=45)
    user_agent: str | None = None


class ConsentWithdrawRequest(BaseSchema):
    user_id: UUID
    consent_type: ConsentType


class ConsentRecordResponse(BaseSchema):
    id: UUID
    user_id: UUID
    consent_type: ConsentType
    consent_given: bool
    consent_version: str
    timestamp: datetime
    ip_address: str | None
    user_agent: str | None
    withdrawal_timestamp: datetime | None


class ExportRequest(BaseSchema):
    user_id: UUID
    request_timestamp: datetime


class DeletionRequest(BaseSchema):
    user_id: UUID
    reason: str = Field(default="", validate_default=True)
    request_timestamp: datetime
    confirm_deletion: bool = Field(default=False, validate_default=True)

    @field_validator("reason")
    @classmethod
    def reason_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Grund ist erforderlich")
        return v.strip()

    @field_validator("confirm_deletion")
    @classmethod
    def deletion_confirmed(cls, v: bool) -> bool:
        if v is not True:
            raise ValueError("Löschung muss bestätigt werden")
        return v


class EligibilityRequest(BaseSchema):
    user_id: UUID


class DeletionEligibility(BaseSchema):
    """Whether a user's data may be erased right now."""

    can_delete: bool
    reasons: list[str] = Field(default_factory=list)
    active_reservations: int = 0
    total_reservations: int = 0


class ProcessingLogRequest(BaseSchema):
    """Audit entry submitted by the client."""

    user_id: UUID | None = None
    action: ProcessingAction
    data_type: DataType
    legal_basis: LegalBasis
    processor_id: str | None = Field(default=None, max_length=100)
    details: dict[str, Any] | None = None

    @field_validator("details", mode="before")
    @classmethod
    def parse_details(cls, v: Any) -> Any:
        # Browsers send details pre-serialized
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                return {"raw": v}
            return parsed if isinstance(parsed, dict) else {"value": parsed}
        return v


class RectificationRequest(BaseSchema):
    user_id: UUID
    updates: UserUpdates
    request_timestamp: datetime | None = None


class CleanupResult(BaseSchema):
    """Counts reported by retention cleanup."""

    expired_reservations: int = 0
    deleted_users: int = 0
    cleaned_logs: int = 0


class DeletionDetails(BaseSchema):
    deletion_timestamp: datetime
    reason: str
    affected_data_types: list[str]


class DeletionResponse(ApiResponse[None]):
    """Erasure confirmation; ``details`` lists what was removed."""

    details: DeletionDetails
