"""DataProcessingLog model: append-only GDPR audit trail."""

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from flaschenpost.models.base import Base, JSONType, utcnow


class ProcessingAction(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    ACCESSED = "accessed"
    EXPORTED = "exported"
    DELETED = "deleted"
    CONSENT_GIVEN = "consent_given"
    CONSENT_WITHDRAWN = "consent_withdrawn"
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_UPDATED = "reservation_updated"
    RESERVATION_CANCELLED = "reservation_cancelled"


class DataType(str, enum.Enum):
    USER_DATA = "user_data"
    RESERVATION = "reservation"
    CONSENT = "consent"
    PROCESSING_LOG = "processing_log"


class LegalBasis(str, enum.Enum):
    CONSENT = "consent"
    CONTRACT = "contract"
    LEGITIMATE_INTEREST = "legitimate_interest"
    USER_REQUEST = "user_request"


class DataProcessingLog(Base):
    """Audit entry for a GDPR-relevant action.

    Entries outlive their subject: erasing a user nulls ``user_id`` instead of
    deleting the row. Entries are purged after the log retention period.
    """

    __tablename__ = "data_processing_logs"

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action: Mapped[ProcessingAction] = mapped_column(
        Enum(
            ProcessingAction,
            name="processing_action",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    data_type: Mapped[DataType] = mapped_column(
        Enum(
            DataType,
            name="processing_data_type",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    legal_basis: Mapped[LegalBasis] = mapped_column(
        Enum(
            LegalBasis,
            name="legal_basis",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    processor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    def __repr__(self) -> str:
        return f"<DataProcessingLog {self.action.value} {self.data_type.value}>"
