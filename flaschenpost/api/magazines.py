"""Public magazine catalog endpoint."""

import logging

from fastapi import APIRouter, Response

from flaschenpost.core.deps import DBSession
from flaschenpost.core.errors import StorageError
from flaschenpost.models.processing_log import DataType, LegalBasis, ProcessingAction
from flaschenpost.schemas.magazine import MagazineListResponse, MagazineResponse
from flaschenpost.services.magazine_service import MagazineService
from flaschenpost.services.processing_log_service import ProcessingLogService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=MagazineListResponse)
async def list_magazines(db: DBSession, response: Response) -> MagazineListResponse:
    """List issues that can currently be reserved.

    A storage failure yields an empty catalog rather than an error so the
    reservation page still renders.
    """
    await ProcessingLogService(db).log_data_processing(
        action=ProcessingAction.ACCESSED,
        data_type=DataType.USER_DATA,
        legal_basis=LegalBasis.LEGITIMATE_INTEREST,
        details={"endpoint": "/api/magazines"},
    )

    try:
        magazines = await MagazineService(db).get_active_magazines()
    except StorageError as e:
        logger.error("Database not available: %s", e)
        magazines = []

    response.headers["Cache-Control"] = "public, max-age=300"
    return MagazineListResponse(
        data=[MagazineResponse.model_validate(m) for m in magazines],
        count=len(magazines),
    )
