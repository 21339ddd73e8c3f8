"""User model: the family that places reservations."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flaschenpost.models.base import Base, utcnow

if TYPE_CHECKING:
    from flaschenpost.models.consent import ConsentRecord
    from flaschenpost.models.reservation import Reservation


class User(Base):
    """Identity record for a reservation holder.

    Created lazily on the first reservation for an email address and kept
    until ``data_retention_until`` passes, after which retention cleanup
    erases it together with its reservations and consents.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Postal address, only collected for shipping
    street: Mapped[str | None] = mapped_column(String(200), nullable=True)
    house_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(200), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)

    # GDPR
    consent_version: Mapped[str] = mapped_column(String(10), nullable=False, default="1.0")
    consent_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    data_retention_until: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    reservations: Mapped[list["Reservation"]] = relationship(
        "Reservation",
        back_populates="user",
    )
    consents: Mapped[list["ConsentRecord"]] = relationship(
        "ConsentRecord",
        back_populates="user",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User {self.email}>"
