"""Pydantic schemas for user records and rectification."""

from datetime import datetime
from uuid import UUID

from pydantic import field_validator

from flaschenpost.schemas.common import BaseSchema
from flaschenpost.schemas.reservation import AddressInput, bounded_text, normalize_phone


class UserCreate(BaseSchema):
    """Internal payload for creating a user from a reservation."""

    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    address: AddressInput | None = None
    consent_version: str | None = None


class UserResponse(BaseSchema):
    id: UUID
    email: str
    first_name: str
    last_name: str
    phone: str | None
    street: str | None
    house_number: str | None
    address_line2: str | None
    postal_code: str | None
    city: str | None
    country: str | None
    consent_version: str
    consent_timestamp: datetime
    data_retention_until: datetime
    last_activity: datetime
    created_at: datetime
    updated_at: datetime


class UserUpdates(BaseSchema):
    """Fields a data subject may correct (Art. 16 GDPR).

    Unset fields are left untouched; the email address is the identity key and
    cannot be changed here.
    """

    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: AddressInput | None = None

    @field_validator("first_name", mode="before")
    @classmethod
    def validate_first_name(cls, v: str | None) -> str | None:
        if v is None:
            raise ValueError("Vorname muss mindestens 2 Zeichen lang sein")
        return bounded_text(
            v,
            min_length=2,
            max_length=100,
            too_short="Vorname muss mindestens 2 Zeichen lang sein",
            too_long="Vorname darf maximal 100 Zeichen lang sein",
        )

    @field_validator("last_name", mode="before")
    @classmethod
    def validate_last_name(cls, v: str | None) -> str | None:
        if v is None:
            raise ValueError("Nachname muss mindestens 2 Zeichen lang sein")
        return bounded_text(
            v,
            min_length=2,
            max_length=100,
            too_short="Nachname muss mindestens 2 Zeichen lang sein",
            too_long="Nachname darf maximal 100 Zeichen lang sein",
        )

    @field_validator("phone", mode="before")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return normalize_phone(v)

    def to_updates(self) -> dict[str, str | None]:
        """Column updates for the fields the caller actually sent."""
        sent = self.model_fields_set
        updates: dict[str, str | None] = {}
        for field in ("first_name", "last_name", "phone"):
            if field in sent:
                updates[field] = getattr(self, field)
        if "address" in sent and self.address is not None:
            updates.update(
                street=self.address.street,
                house_number=self.address.house_number,
                address_line2=self.address.address_line2,
                postal_code=self.address.postal_code,
                city=self.address.city,
                country=self.address.country,
            )
        return updates
