"""Magazine model: a printed issue that can be reserved."""

from datetime import date

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from flaschenpost.models.base import Base


class Magazine(Base):
    """A catalog issue with total and available copy counters."""

    __tablename__ = "magazines"
    __table_args__ = (
        UniqueConstraint("title", "issue_number", name="uq_magazines_title_issue"),
        CheckConstraint("available_copies >= 0", name="available_non_negative"),
        CheckConstraint("available_copies <= total_copies", name="available_le_total"),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    issue_number: Mapped[str] = mapped_column(String(50), nullable=False)
    publish_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_copies: Mapped[int] = mapped_column(Integer, nullable=False)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False)
    cover_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Magazine {self.title} #{self.issue_number} ({self.available_copies}/{self.total_copies})>"
