"""Tests for the magazine catalog endpoint."""

from collections.abc import Callable
from datetime import date
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.errors import StorageError
from flaschenpost.models.processing_log import DataProcessingLog, ProcessingAction


class TestListMagazines:
    """GET /api/magazines"""

    @pytest.mark.asyncio
    async def test_lists_active_issues_newest_first(
        self, client: AsyncClient, magazine_factory: Callable[..., Any]
    ) -> None:
        await magazine_factory(issue_number="2025-4", publish_date=date(2025, 12, 1))
        await magazine_factory(issue_number="2026-1", publish_date=date(2026, 3, 1))
        await magazine_factory(issue_number="old", is_active=False)
        await magazine_factory(issue_number="sold-out", available_copies=0)

        response = await client.get("/api/magazines")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 2
        assert [m["issueNumber"] for m in body["data"]] == ["2026-1", "2025-4"]
        assert body["data"][0]["availableCopies"] == 50

    @pytest.mark.asyncio
    async def test_cache_header(self, client: AsyncClient) -> None:
        response = await client.get("/api/magazines")
        assert response.headers["Cache-Control"] == "public, max-age=300"

    @pytest.mark.asyncio
    async def test_logs_access(self, client: AsyncClient, db_session: AsyncSession) -> None:
        await client.get("/api/magazines")

        logs = (await db_session.execute(select(DataProcessingLog))).scalars().all()
        assert len(logs) == 1
        assert logs[0].action == ProcessingAction.ACCESSED
        assert logs[0].details == {"endpoint": "/api/magazines"}

    @pytest.mark.asyncio
    async def test_storage_failure_returns_empty_list(self, client: AsyncClient) -> None:
        with patch(
            "flaschenpost.api.magazines.MagazineService.get_active_magazines",
            new=AsyncMock(side_effect=StorageError("Failed to get magazines: boom")),
        ):
            response = await client.get("/api/magazines")

        assert response.status_code == 200
        assert response.json()["data"] == []
        assert response.json()["count"] == 0
