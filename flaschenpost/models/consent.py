"""ConsentRecord model for granular GDPR consent tracking."""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flaschenpost.models.base import Base, utcnow

if TYPE_CHECKING:
    from flaschenpost.models.user import User


class ConsentType(str, enum.Enum):
    """Consent categories offered in the consent banner."""

    ESSENTIAL = "essential"
    FUNCTIONAL = "functional"
    ANALYTICS = "analytics"
    MARKETING = "marketing"


class ConsentRecord(Base):
    """One consent decision for one category.

    Rows are never updated in place: a withdrawal is a new row with
    ``consent_given=False``. The newest row per (user, type) is current.
    """

    __tablename__ = "user_consents"
    __table_args__ = (Index("ix_user_consents_user_type", "user_id", "consent_type"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    consent_type: Mapped[ConsentType] = mapped_column(
        Enum(
            ConsentType,
            name="consent_type",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    consent_given: Mapped[bool] = mapped_column(Boolean, nullable=False)
    consent_version: Mapped[str] = mapped_column(String(10), nullable=False, default="1.0")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    withdrawal_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    user: Mapped["User"] = relationship("User", back_populates="consents")

    def __repr__(self) -> str:
        return f"<ConsentRecord {self.consent_type.value}={self.consent_given}>"
