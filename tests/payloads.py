"""Request bodies shared by route tests."""

from datetime import date, timedelta
from typing import Any
from uuid import UUID

TEST_EMAIL = "anna.schmidt@example.com"


def reservation_payload(magazine_id: UUID | str, **overrides: Any) -> dict[str, Any]:
    """A valid pickup reservation body; keyword arguments replace fields."""
    payload: dict[str, Any] = {
        "firstName": "Anna",
        "lastName": "Schmidt",
        "email": TEST_EMAIL,
        "phone": "+49 (89) 123-4567",
        "magazineId": str(magazine_id),
        "quantity": 2,
        "deliveryMethod": "pickup",
        "pickupLocation": "Kindergarten Leuchtturm",
        "pickupDate": (date.today() + timedelta(days=3)).isoformat(),
        "consents": {
            "essential": True,
            "functional": False,
            "analytics": False,
            "marketing": False,
        },
    }
    payload.update(overrides)
    return payload


def shipping_address(**overrides: Any) -> dict[str, Any]:
    address = {
        "street": "Leopoldstraße",
        "houseNumber": "12a",
        "postalCode": "80802",
        "city": "München",
        "country": "DE",
    }
    address.update(overrides)
    return address
