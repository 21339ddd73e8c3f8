"""Pydantic schemas for the magazine catalog."""

from datetime import date
from uuid import UUID

from flaschenpost.schemas.common import ApiResponse, BaseSchema


class MagazineResponse(BaseSchema):
    """Public view of a reservable issue."""

    id: UUID
    title: str
    issue_number: str
    publish_date: date
    description: str | None
    total_copies: int
    available_copies: int
    cover_image_url: str | None
    is_active: bool


class MagazineListResponse(ApiResponse[list[MagazineResponse]]):
    count: int = 0
