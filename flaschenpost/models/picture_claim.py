"""PictureClaim model guarding the free kindergarten pictures."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from flaschenpost.models.base import Base, utcnow


class PictureType(str, enum.Enum):
    GROUP = "group"
    VORSCHUL = "vorschul"

    @property
    def label(self) -> str:
        return "Gruppenbild" if self is PictureType.GROUP else "Vorschüler-Bild"


class PictureClaim(Base):
    """One free picture claimed by a family for a kindergarten group.

    The unique constraint on (family_email, group_name, picture_type) is what
    actually enforces one claim per family, group and picture type.
    """

    __tablename__ = "picture_claims"
    __table_args__ = (
        UniqueConstraint(
            "family_email",
            "group_name",
            "picture_type",
            name="uq_picture_claims_family_group_type",
        ),
    )

    family_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    group_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    picture_type: Mapped[PictureType] = mapped_column(
        Enum(
            PictureType,
            name="picture_type",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    child_name: Mapped[str] = mapped_column(String(200), nullable=False)
    reservation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PictureClaim {self.family_email} {self.group_name} ({self.picture_type.value})>"
