"""Pydantic schemas for request/response validation."""

from flaschenpost.schemas.common import ApiResponse, BaseSchema, ErrorResponse, HealthResponse

__all__ = [
    "ApiResponse",
    "BaseSchema",
    "ErrorResponse",
    "HealthResponse",
]
