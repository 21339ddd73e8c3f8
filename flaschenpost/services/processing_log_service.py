"""GDPR processing-log writer (Art. 30 records of processing)."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.errors import StorageError
from flaschenpost.core.logging_config import current_client_ip
from flaschenpost.models.processing_log import (
    DataProcessingLog,
    DataType,
    LegalBasis,
    ProcessingAction,
)

logger = logging.getLogger(__name__)


def validate_data_processing(action: str, data_type: str, legal_basis: str) -> bool:
    """Check that all three values belong to the processing-log vocabularies."""
    try:
        ProcessingAction(action)
        DataType(data_type)
        LegalBasis(legal_basis)
    except ValueError:
        return False
    return True


class ProcessingLogService:
    """Appends audit entries for GDPR-relevant actions."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def log_data_processing(
        self,
        *,
        action: ProcessingAction,
        data_type: DataType,
        legal_basis: LegalBasis,
        user_id: UUID | None = None,
        processor_id: str | None = None,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
        strict: bool = False,
    ) -> DataProcessingLog | None:
        """Write one processing-log entry and commit it.

        Non-strict writes log and swallow their own failures and return None.
        Strict writes raise ``StorageError`` so the caller's operation fails
        with them. The client IP of the current request is used when
        ``ip_address`` is not given.
        """
        entry = DataProcessingLog(
            user_id=user_id,
            action=action,
            data_type=data_type,
            legal_basis=legal_basis,
            processor_id=processor_id,
            ip_address=ip_address or current_client_ip(),
            details=details,
        )
        self.db.add(entry)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            if strict:
                raise StorageError(f"Failed to log data processing: {e}") from e
            logger.error(
                "Failed to log data processing: action=%s data_type=%s error=%s",
                action.value,
                data_type.value,
                e,
            )
            return None
        return entry
