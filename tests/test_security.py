"""Tests for signed cancellation links."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import jwt
import pytest

from flaschenpost.core.config import settings
from flaschenpost.core.security import (
    cancellation_url,
    create_cancellation_token,
    decode_cancellation_token,
)


def test_round_trip() -> None:
    reservation_id, user_id = uuid4(), uuid4()

    token = create_cancellation_token(reservation_id, user_id)

    assert decode_cancellation_token(token) == (reservation_id, user_id)


def test_url_points_at_cancel_endpoint() -> None:
    url = cancellation_url(uuid4(), uuid4())
    assert url.startswith(f"{settings.site_url}/api/reservations/cancel?token=")


def test_expired_token() -> None:
    past = datetime.now(UTC) - timedelta(days=1)
    token = jwt.encode(
        {
            "purpose": "reservation_cancel",
            "reservation_id": str(uuid4()),
            "user_id": str(uuid4()),
            "exp": past,
        },
        settings.secret_key,
        algorithm="HS256",
    )

    with pytest.raises(jwt.ExpiredSignatureError):
        decode_cancellation_token(token)


def test_wrong_purpose() -> None:
    token = jwt.encode(
        {"purpose": "login", "reservation_id": str(uuid4()), "user_id": str(uuid4())},
        settings.secret_key,
        algorithm="HS256",
    )

    with pytest.raises(jwt.InvalidTokenError):
        decode_cancellation_token(token)


def test_foreign_signature() -> None:
    token = jwt.encode(
        {"purpose": "reservation_cancel", "reservation_id": str(uuid4()), "user_id": str(uuid4())},
        "some-other-secret-that-is-long-enough-for-hs256",
        algorithm="HS256",
    )

    with pytest.raises(jwt.InvalidSignatureError):
        decode_cancellation_token(token)


def test_missing_claim() -> None:
    token = jwt.encode(
        {"purpose": "reservation_cancel", "reservation_id": str(uuid4())},
        settings.secret_key,
        algorithm="HS256",
    )

    with pytest.raises(jwt.InvalidTokenError, match="Missing claim"):
        decode_cancellation_token(token)
