"""Reservation model linking a user to a magazine issue."""

import enum
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flaschenpost.models.base import Base, utcnow

if TYPE_CHECKING:
    from flaschenpost.models.magazine import Magazine
    from flaschenpost.models.user import User


class ReservationStatus(str, enum.Enum):
    """Lifecycle of a reservation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXPIRED = "expired"


ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


class DeliveryMethod(str, enum.Enum):
    """How the copies reach the family."""

    PICKUP = "pickup"
    SHIPPING = "shipping"


class Reservation(Base):
    """A request for N copies of one magazine issue, for pickup or shipping.

    Only the fields of the chosen delivery method are populated: pickup
    reservations carry ``pickup_location``/``pickup_date``, shipping
    reservations carry the ``shipping_*`` address.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        CheckConstraint("quantity > 0 AND quantity <= 5", name="quantity_range"),
        Index("ix_reservations_status_expires", "status", "expires_at"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    magazine_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("magazines.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(
            ReservationStatus,
            name="reservation_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=ReservationStatus.PENDING,
        nullable=False,
    )
    reservation_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    # Delivery
    delivery_method: Mapped[DeliveryMethod] = mapped_column(
        Enum(
            DeliveryMethod,
            name="delivery_method",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=DeliveryMethod.PICKUP,
        nullable=False,
    )
    pickup_location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    pickup_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    shipping_street: Mapped[str | None] = mapped_column(String(200), nullable=True)
    shipping_house_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shipping_address_line2: Mapped[str | None] = mapped_column(String(200), nullable=True)
    shipping_postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shipping_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipping_country: Mapped[str | None] = mapped_column(String(2), nullable=True)

    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Free picture add-on
    order_group_picture: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    child_group_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    order_vorschul_picture: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    child_is_vorschueler: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    child_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # GDPR / lifecycle
    consent_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="reservations")
    magazine: Mapped["Magazine"] = relationship("Magazine")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return f"<Reservation {self.id} x{self.quantity} ({self.status.value})>"
