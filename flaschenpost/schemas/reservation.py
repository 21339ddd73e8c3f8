"""Pydantic schemas for reservations.

Validation messages are German because they are shown verbatim next to the
form fields.
"""

import re
from datetime import date, datetime, timedelta
from typing import Literal
from uuid import UUID

from pydantic import Field, ValidationInfo, field_validator

from flaschenpost.core.config import settings
from flaschenpost.models.base import utcnow
from flaschenpost.models.reservation import DeliveryMethod, ReservationStatus
from flaschenpost.schemas.common import BaseSchema

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")
PHONE_STRIP_PATTERN = re.compile(r"[\s\-()]")


def bounded_text(
    value: str | None,
    *,
    min_length: int,
    max_length: int,
    too_short: str,
    too_long: str,
) -> str:
    text = (value or "").strip()
    if len(text) < min_length:
        raise ValueError(too_short)
    if len(text) > max_length:
        raise ValueError(too_long)
    return text


def _optional_text(value: str | None, *, max_length: int, too_long: str) -> str | None:
    text = (value or "").strip()
    if len(text) > max_length:
        raise ValueError(too_long)
    return text or None


def normalize_email(value: str | None) -> str:
    """Trim, lower-case and validate an email address."""
    email = (value or "").strip().lower()
    if len(email) > 254:
        raise ValueError("E-Mail-Adresse ist zu lang")
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Bitte geben Sie eine gültige E-Mail-Adresse ein")
    return email


def normalize_phone(value: str | None) -> str | None:
    """Strip separators from a phone number; empty input means no phone."""
    if value is None:
        return None
    phone = PHONE_STRIP_PATTERN.sub("", str(value))
    if not phone:
        return None
    if not PHONE_PATTERN.match(phone):
        raise ValueError("Bitte geben Sie eine gültige Telefonnummer ein")
    return phone


# --- Request schemas ---


class AddressInput(BaseSchema):
    """Postal address for shipped reservations."""

    street: str = Field(default="", validate_default=True)
    house_number: str = Field(default="", validate_default=True)
    postal_code: str = Field(default="", validate_default=True)
    city: str = Field(default="", validate_default=True)
    country: str = Field(default="", validate_default=True)
    address_line2: str | None = None

    @field_validator("street", mode="before")
    @classmethod
    def validate_street(cls, v: str | None) -> str:
        return bounded_text(
            v,
            min_length=1,
            max_length=200,
            too_short="Straße ist erforderlich",
            too_long="Straße ist zu lang",
        )

    @field_validator("house_number", mode="before")
    @classmethod
    def validate_house_number(cls, v: str | None) -> str:
        return bounded_text(
            v,
            min_length=1,
            max_length=20,
            too_short="Hausnummer ist erforderlich",
            too_long="Hausnummer ist zu lang",
        )

    @field_validator("postal_code", mode="before")
    @classmethod
    def validate_postal_code(cls, v: str | None) -> str:
        return bounded_text(
            v,
            min_length=4,
            max_length=20,
            too_short="Postleitzahl muss mindestens 4 Zeichen lang sein",
            too_long="Postleitzahl ist zu lang",
        )

    @field_validator("city", mode="before")
    @classmethod
    def validate_city(cls, v: str | None) -> str:
        return bounded_text(
            v,
            min_length=1,
            max_length=100,
            too_short="Stadt ist erforderlich",
            too_long="Stadt ist zu lang",
        )

    @field_validator("country", mode="before")
    @classmethod
    def validate_country(cls, v: str | None) -> str:
        country = (v or "").strip().upper()
        if len(country) != 2:
            raise ValueError("Ungültiger Ländercode")
        if country not in settings.supported_countries:
            raise ValueError("Land wird nicht unterstützt")
        return country

    @field_validator("address_line2", mode="before")
    @classmethod
    def validate_address_line2(cls, v: str | None) -> str | None:
        return _optional_text(v, max_length=200, too_long="Adresszusatz ist zu lang")


class ConsentData(BaseSchema):
    """Consent banner choices submitted with a reservation."""

    essential: bool
    functional: bool = False
    analytics: bool = False
    marketing: bool = False

    @field_validator("essential")
    @classmethod
    def essential_required(cls, v: bool) -> bool:
        if v is not True:
            raise ValueError("Erforderliche Einwilligung muss erteilt werden")
        return v

    def as_dict(self) -> dict[str, bool]:
        return {
            "essential": self.essential,
            "functional": self.functional,
            "analytics": self.analytics,
            "marketing": self.marketing,
        }


class ReservationCreate(BaseSchema):
    """Reservation form submission.

    Field order matters: the delivery-dependent validators read
    ``delivery_method`` and the picture flags from already-validated data.
    """

    first_name: str = Field(default="", validate_default=True)
    last_name: str = Field(default="", validate_default=True)
    email: str = Field(default="", validate_default=True)
    phone: str | None = None
    magazine_id: UUID = Field(default=None, validate_default=True)
    quantity: int = Field(default=None, validate_default=True)
    delivery_method: DeliveryMethod = Field(default=None, validate_default=True)
    pickup_location: str | None = Field(default=None, validate_default=True)
    pickup_date: date | None = None
    address: AddressInput | None = Field(default=None, validate_default=True)
    payment_method: Literal["paypal", "bank_transfer"] | None = None
    notes: str | None = None
    consents: ConsentData

    order_group_picture: bool = False
    order_vorschul_picture: bool = False
    child_is_vorschueler: bool = False
    child_group_name: str | None = Field(default=None, validate_default=True)
    child_name: str | None = Field(default=None, validate_default=True)

    @field_validator("first_name", mode="before")
    @classmethod
    def validate_first_name(cls, v: str | None) -> str:
        return bounded_text(
            v,
            min_length=2,
            max_length=100,
            too_short="Vorname muss mindestens 2 Zeichen lang sein",
            too_long="Vorname darf maximal 100 Zeichen lang sein",
        )

    @field_validator("last_name", mode="before")
    @classmethod
    def validate_last_name(cls, v: str | None) -> str:
        return bounded_text(
            v,
            min_length=2,
            max_length=100,
            too_short="Nachname muss mindestens 2 Zeichen lang sein",
            too_long="Nachname darf maximal 100 Zeichen lang sein",
        )

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: str | None) -> str:
        return normalize_email(v)

    @field_validator("phone", mode="before")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        return normalize_phone(v)

    @field_validator("magazine_id", mode="before")
    @classmethod
    def validate_magazine_id(cls, v: object) -> UUID:
        if isinstance(v, UUID):
            return v
        if not v:
            raise ValueError("Bitte wählen Sie eine Magazin-Ausgabe")
        try:
            return UUID(str(v))
        except ValueError:
            raise ValueError("Ungültige Magazin-ID") from None

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v: object) -> int:
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError("Anzahl muss eine ganze Zahl sein")
        if v < 1:
            raise ValueError("Mindestens 1 Exemplar erforderlich")
        if v > settings.max_copies_per_reservation:
            raise ValueError(
                f"Maximal {settings.max_copies_per_reservation} Exemplare pro Reservierung"
            )
        return v

    @field_validator("delivery_method", mode="before")
    @classmethod
    def validate_delivery_method(cls, v: object) -> DeliveryMethod:
        try:
            return DeliveryMethod(v)
        except ValueError:
            raise ValueError("Ungültige Liefermethode") from None

    @field_validator("pickup_location", mode="before")
    @classmethod
    def validate_pickup_location(cls, v: str | None, info: ValidationInfo) -> str | None:
        location = _optional_text(v, max_length=200, too_long="Abholort ist zu lang")
        if info.data.get("delivery_method") == DeliveryMethod.PICKUP and not location:
            raise ValueError("Bitte wählen Sie einen Abholort")
        return location

    @field_validator("pickup_date")
    @classmethod
    def validate_pickup_date(cls, v: date | None) -> date | None:
        if v is None:
            return v
        tomorrow = utcnow().date() + timedelta(days=1)
        if v < tomorrow:
            raise ValueError("Abholdatum muss mindestens einen Tag in der Zukunft liegen")
        return v

    @field_validator("address")
    @classmethod
    def validate_address(cls, v: AddressInput | None, info: ValidationInfo) -> AddressInput | None:
        if info.data.get("delivery_method") == DeliveryMethod.SHIPPING and v is None:
            raise ValueError("Lieferadresse ist bei Versand erforderlich")
        return v

    @field_validator("payment_method", mode="before")
    @classmethod
    def empty_payment_method(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("notes", mode="before")
    @classmethod
    def validate_notes(cls, v: str | None) -> str | None:
        return _optional_text(
            v, max_length=500, too_long="Anmerkungen dürfen maximal 500 Zeichen lang sein"
        )

    @field_validator("child_group_name", mode="before")
    @classmethod
    def validate_child_group_name(cls, v: str | None, info: ValidationInfo) -> str | None:
        group = _optional_text(v, max_length=100, too_long="Gruppenname ist zu lang")
        wants_picture = info.data.get("order_group_picture") or info.data.get(
            "order_vorschul_picture"
        )
        if wants_picture and not group:
            raise ValueError("Bitte wählen Sie die Gruppe Ihres Kindes")
        return group

    @field_validator("child_name", mode="before")
    @classmethod
    def validate_child_name(cls, v: str | None, info: ValidationInfo) -> str | None:
        name = _optional_text(v, max_length=200, too_long="Name des Kindes ist zu lang")
        wants_picture = info.data.get("order_group_picture") or info.data.get(
            "order_vorschul_picture"
        )
        if wants_picture and not name:
            raise ValueError("Bitte geben Sie den Namen Ihres Kindes an")
        return name

    @property
    def wants_pictures(self) -> bool:
        return self.order_group_picture or self.order_vorschul_picture


# --- Response schemas ---


class ReservationMagazineInfo(BaseSchema):
    title: str
    issue_number: str


class ReservationCreated(BaseSchema):
    """Payload returned after a successful reservation."""

    id: UUID
    status: ReservationStatus
    expires_at: datetime | None
    magazine: ReservationMagazineInfo


class ReservationResponse(BaseSchema):
    """Full reservation as stored."""

    id: UUID
    user_id: UUID
    magazine_id: UUID
    quantity: int
    status: ReservationStatus
    reservation_date: datetime
    delivery_method: DeliveryMethod
    pickup_location: str | None
    pickup_date: date | None
    shipping_street: str | None
    shipping_house_number: str | None
    shipping_address_line2: str | None
    shipping_postal_code: str | None
    shipping_city: str | None
    shipping_country: str | None
    payment_method: str | None
    notes: str | None
    order_group_picture: bool
    child_group_name: str | None
    order_vorschul_picture: bool
    child_is_vorschueler: bool
    child_name: str | None
    consent_reference: str | None
    expires_at: datetime | None
    created_at: datetime
    updated_at: datetime


class CancellationResult(BaseSchema):
    reservation_id: UUID
    status: ReservationStatus
