"""Tests for the processing-log writer."""

from collections.abc import Callable
from typing import Any
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.errors import StorageError
from flaschenpost.core.logging_config import client_ip_var
from flaschenpost.models.processing_log import (
    DataProcessingLog,
    DataType,
    LegalBasis,
    ProcessingAction,
)
from flaschenpost.services.processing_log_service import (
    ProcessingLogService,
    validate_data_processing,
)


class TestValidateDataProcessing:
    def test_known_values(self) -> None:
        assert validate_data_processing("reservation_created", "reservation", "consent")

    @pytest.mark.parametrize(
        ("action", "data_type", "legal_basis"),
        [
            ("shredded", "reservation", "consent"),
            ("created", "cookies", "consent"),
            ("created", "reservation", "because"),
        ],
    )
    def test_unknown_values(self, action: str, data_type: str, legal_basis: str) -> None:
        assert not validate_data_processing(action, data_type, legal_basis)


class TestLogDataProcessing:
    @pytest.mark.asyncio
    async def test_writes_entry(
        self, db_session: AsyncSession, user_factory: Callable[..., Any]
    ) -> None:
        user = await user_factory()
        entry = await ProcessingLogService(db_session).log_data_processing(
            user_id=user.id,
            action=ProcessingAction.ACCESSED,
            data_type=DataType.USER_DATA,
            legal_basis=LegalBasis.LEGITIMATE_INTEREST,
            processor_id="admin-1",
            details={"endpoint": "/api/gdpr/export-data"},
        )

        assert entry is not None
        stored = (await db_session.execute(select(DataProcessingLog))).scalar_one()
        assert stored.user_id == user.id
        assert stored.processor_id == "admin-1"
        assert stored.details == {"endpoint": "/api/gdpr/export-data"}

    @pytest.mark.asyncio
    async def test_uses_request_client_ip(self, db_session: AsyncSession) -> None:
        token = client_ip_var.set("203.0.113.7")
        try:
            entry = await ProcessingLogService(db_session).log_data_processing(
                action=ProcessingAction.ACCESSED,
                data_type=DataType.RESERVATION,
                legal_basis=LegalBasis.LEGITIMATE_INTEREST,
            )
        finally:
            client_ip_var.reset(token)

        assert entry is not None
        assert entry.ip_address == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, db_session: AsyncSession) -> None:
        service = ProcessingLogService(db_session)
        with patch.object(
            db_session, "commit", side_effect=OperationalError("INSERT", {}, Exception("down"))
        ):
            result = await service.log_data_processing(
                action=ProcessingAction.ACCESSED,
                data_type=DataType.USER_DATA,
                legal_basis=LegalBasis.LEGITIMATE_INTEREST,
            )

        assert result is None

    @pytest.mark.asyncio
    async def test_strict_failure_raises(self, db_session: AsyncSession) -> None:
        service = ProcessingLogService(db_session)
        with (
            patch.object(
                db_session,
                "commit",
                side_effect=OperationalError("INSERT", {}, Exception("down")),
            ),
            pytest.raises(StorageError, match="Failed to log data processing"),
        ):
            await service.log_data_processing(
                action=ProcessingAction.RESERVATION_CREATED,
                data_type=DataType.RESERVATION,
                legal_basis=LegalBasis.CONSENT,
                strict=True,
            )
