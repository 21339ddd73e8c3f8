"""Signed links for actions taken from transactional emails."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import jwt

from flaschenpost.core.config import settings

CANCELLATION_PURPOSE = "reservation_cancel"


def create_cancellation_token(reservation_id: UUID, user_id: UUID) -> str:
    """Create a signed token that lets the recipient cancel one reservation."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "purpose": CANCELLATION_PURPOSE,
        "reservation_id": str(reservation_id),
        "user_id": str(user_id),
        "iat": now,
        "exp": now + timedelta(days=settings.cancellation_link_days),
    }
    return jwt.encode(payload, settings.secret_key, algorithm="HS256")


def decode_cancellation_token(token: str) -> tuple[UUID, UUID]:
    """Return ``(reservation_id, user_id)`` from a cancellation token.

    Raises:
        jwt.InvalidTokenError: signature, expiry or purpose is wrong
        ValueError: the ids are not UUIDs
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=["HS256"])
    if payload.get("purpose") != CANCELLATION_PURPOSE:
        raise jwt.InvalidTokenError("Token is not a cancellation token")
    try:
        return UUID(payload["reservation_id"]), UUID(payload["user_id"])
    except KeyError as e:
        raise jwt.InvalidTokenError(f"Missing claim: {e}") from e


def cancellation_url(reservation_id: UUID, user_id: UUID) -> str:
    """Absolute link to the cancellation endpoint for a reservation."""
    token = create_cancellation_token(reservation_id, user_id)
    return f"{settings.site_url.rstrip('/')}{settings.api_prefix}/reservations/cancel?token={token}"
