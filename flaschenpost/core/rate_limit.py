"""Rate limiting configuration using slowapi."""

from slowapi import Limiter
from starlette.requests import Request

from flaschenpost.core.config import settings


def get_client_ip(request: Request) -> str:
    """Extract the client IP behind the hosting provider's proxy."""
    return (
        request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
        or request.headers.get("X-Real-IP", "").strip()
        or (request.client.host if request.client else "unknown")
    )


limiter = Limiter(key_func=get_client_ip, storage_uri=settings.rate_limit_storage_uri)
