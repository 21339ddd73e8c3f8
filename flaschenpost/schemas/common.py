"""Common Pydantic schemas used across the API."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class ApiResponse[T](BaseSchema):
    """Envelope shared by every endpoint."""

    success: bool = True
    data: T | None = None
    message: str | None = None


class HealthResponse(BaseSchema):
    """Health check response schema."""

    status: str
    version: str
    environment: str
    checks: dict[str, str]


class ErrorResponse(BaseSchema):
    """Error response schema."""

    success: bool = False
    error: str
    message: str | None = None
    errors: list[dict[str, Any]] | None = None
