"""SQLAlchemy models."""

from flaschenpost.models.base import Base
from flaschenpost.models.consent import ConsentRecord, ConsentType
from flaschenpost.models.magazine import Magazine
from flaschenpost.models.picture_claim import PictureClaim, PictureType
from flaschenpost.models.processing_log import (
    DataProcessingLog,
    DataType,
    LegalBasis,
    ProcessingAction,
)
from flaschenpost.models.reservation import (
    ACTIVE_STATUSES,
    DeliveryMethod,
    Reservation,
    ReservationStatus,
)
from flaschenpost.models.user import User

__all__ = [
    # Base
    "Base",
    # Users & consent
    "User",
    "ConsentRecord",
    "ConsentType",
    # Catalog
    "Magazine",
    # Reservations
    "Reservation",
    "ReservationStatus",
    "DeliveryMethod",
    "ACTIVE_STATUSES",
    # Picture claims
    "PictureClaim",
    "PictureType",
    # Audit trail
    "DataProcessingLog",
    "ProcessingAction",
    "DataType",
    "LegalBasis",
]
