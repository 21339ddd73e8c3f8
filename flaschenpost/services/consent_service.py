"""Granular consent records (Art. 7 GDPR)."""

import logging
from collections.abc import Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.config import settings
from flaschenpost.core.errors import StorageError
from flaschenpost.core.logging_config import current_client_ip
from flaschenpost.models.base import utcnow
from flaschenpost.models.consent import ConsentRecord, ConsentType
from flaschenpost.models.processing_log import DataType, LegalBasis, ProcessingAction
from flaschenpost.services.processing_log_service import ProcessingLogService

logger = logging.getLogger(__name__)


class ConsentService:
    """Append-only consent history; the newest row per type is current."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.processing_log = ProcessingLogService(db)

    async def record_consent(
        self,
        user_id: UUID,
        consents: Mapping[str, bool],
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> list[ConsentRecord]:
        """Store one row per consent category and log ``consent_given``."""
        ip_address = ip_address or current_client_ip()
        now = utcnow()
        records = [
            ConsentRecord(
                user_id=user_id,
                consent_type=ConsentType(consent_type),
                consent_given=bool(given),
                consent_version=settings.consent_version,
                timestamp=now,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            for consent_type, given in consents.items()
        ]
        self.db.add_all(records)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to record consent: {e}") from e

        await self.processing_log.log_data_processing(
            user_id=user_id,
            action=ProcessingAction.CONSENT_GIVEN,
            data_type=DataType.CONSENT,
            legal_basis=LegalBasis.CONSENT,
            ip_address=ip_address,
            details={"consents": {k: bool(v) for k, v in consents.items()}},
        )
        return records

    async def get_user_consents(self, user_id: UUID) -> list[ConsentRecord]:
        """Full consent history, newest first."""
        stmt = (
            select(ConsentRecord)
            .where(ConsentRecord.user_id == user_id)
            .order_by(ConsentRecord.timestamp.desc(), ConsentRecord.created_at.desc())
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get consents: {e}") from e
        return list(result.scalars().all())

    async def get_current_consents(self, user_id: UUID) -> dict[ConsentType, bool]:
        """Latest decision per category; categories never decided are absent."""
        current: dict[ConsentType, bool] = {}
        for record in await self.get_user_consents(user_id):
            current.setdefault(record.consent_type, record.consent_given)
        return current

    async def withdraw_consent(self, user_id: UUID, consent_type: ConsentType) -> ConsentRecord:
        """Record a withdrawal as a new ``consent_given=False`` row.

        Works whether or not consent was granted before.
        """
        now = utcnow()
        record = ConsentRecord(
            user_id=user_id,
            consent_type=consent_type,
            consent_given=False,
            consent_version=settings.consent_version,
            timestamp=now,
            ip_address=current_client_ip(),
            withdrawal_timestamp=now,
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to withdraw consent: {e}") from e

        logger.info("Consent withdrawn: user=%s type=%s", user_id, consent_type.value)
        await self.processing_log.log_data_processing(
            user_id=user_id,
            action=ProcessingAction.CONSENT_WITHDRAWN,
            data_type=DataType.CONSENT,
            legal_basis=LegalBasis.USER_REQUEST,
            details={"consentType": consent_type.value},
        )
        return record
