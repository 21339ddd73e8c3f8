"""Free picture claims: one group picture and one Vorschüler picture per family and group."""

import logging
from dataclasses import dataclass, field
from uuid import UUID

from fastapi import status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.errors import AppError
from flaschenpost.models.picture_claim import PictureClaim, PictureType

logger = logging.getLogger(__name__)


class PictureClaimError(AppError):
    """A picture claim could not be checked or stored."""

    code = "PICTURE_CLAIM_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    user_message = "Fehler beim Erstellen der Bildbestellung"


class DuplicateClaimError(PictureClaimError):
    """The family already claimed this picture for this group."""

    code = "DUPLICATE_PICTURE_CLAIM"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, group_name: str, picture_type: PictureType) -> None:
        message = (
            f"Sie haben bereits ein {picture_type.label} für die Gruppe {group_name} bestellt."
        )
        super().__init__(message, user_message=message)
        self.group_name = group_name
        self.picture_type = picture_type


class PictureOrderRejectedError(PictureClaimError):
    """The picture order failed validation before the reservation was stored."""

    code = "PICTURE_ORDER_REJECTED"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, errors: list[str]) -> None:
        super().__init__(
            "Picture order rejected: " + "; ".join(errors),
            user_message=errors[0] if errors else None,
            context={"errors": errors},
        )
        self.errors = errors


@dataclass
class PictureOrderValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


def claim_key(group_name: str, picture_type: PictureType) -> str:
    return f"{group_name}-{picture_type.value}"


class PictureClaimService:
    """Checks and records picture claims.

    Checks are advisory and take no locks; the unique constraint on
    ``picture_claims`` decides concurrent claims.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def has_existing_claim(
        self,
        email: str,
        group_name: str,
        picture_type: PictureType,
    ) -> bool:
        stmt = select(PictureClaim.id).where(
            PictureClaim.family_email == email.strip().lower(),
            PictureClaim.group_name == group_name,
            PictureClaim.picture_type == picture_type,
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Error checking picture claim: %s", e)
            raise PictureClaimError(
                f"Failed to check picture claim: {e}",
                user_message="Fehler beim Überprüfen der Bildbestellung",
            ) from e
        return result.first() is not None

    async def check_multiple_claims(
        self,
        email: str,
        claims: list[tuple[str, PictureType]],
    ) -> dict[str, bool]:
        """Map ``"<group>-<type>"`` to whether that claim already exists."""
        results: dict[str, bool] = {}
        for group_name, picture_type in claims:
            results[claim_key(group_name, picture_type)] = await self.has_existing_claim(
                email, group_name, picture_type
            )
        return results

    async def create_claim(
        self,
        email: str,
        group_name: str,
        picture_type: PictureType,
        child_name: str,
        reservation_id: UUID,
    ) -> PictureClaim:
        """Record a claim.

        Raises:
            DuplicateClaimError: the family already holds this claim, either
                found up front or reported by the unique constraint
            PictureClaimError: any other storage failure
        """
        if await self.has_existing_claim(email, group_name, picture_type):
            raise DuplicateClaimError(group_name, picture_type)

        claim = PictureClaim(
            family_email=email.strip().lower(),
            group_name=group_name,
            picture_type=picture_type,
            child_name=child_name,
            reservation_id=reservation_id,
        )
        self.db.add(claim)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateClaimError(group_name, picture_type) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Error creating picture claim: %s", e)
            raise PictureClaimError(f"Failed to create picture claim: {e}") from e

        logger.info(
            "Picture claim created: group=%s type=%s reservation=%s",
            group_name,
            picture_type.value,
            reservation_id,
        )
        return claim

    async def get_family_claims(self, email: str) -> list[PictureClaim]:
        stmt = (
            select(PictureClaim)
            .where(PictureClaim.family_email == email.strip().lower())
            .order_by(PictureClaim.claimed_at.desc())
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise PictureClaimError(
                f"Failed to fetch family claims: {e}",
                user_message="Fehler beim Abrufen der Bildbestellungen",
            ) from e
        return list(result.scalars().all())

    async def delete_claim(self, reservation_id: UUID, *, commit: bool = True) -> int:
        """Release the claims held by a reservation; returns how many were removed."""
        try:
            result = await self.db.execute(
                delete(PictureClaim).where(PictureClaim.reservation_id == reservation_id)
            )
            if commit:
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PictureClaimError(
                f"Failed to delete picture claim: {e}",
                user_message="Fehler beim Löschen der Bildbestellung",
            ) from e
        return result.rowcount or 0

    async def validate_picture_order(
        self,
        email: str,
        order_group_picture: bool,
        group_name: str | None,
        order_vorschul_picture: bool,
        child_is_vorschueler: bool,
    ) -> PictureOrderValidation:
        """Pre-check a picture order before the reservation is stored."""
        errors: list[str] = []
        try:
            if order_group_picture and group_name:
                if await self.has_existing_claim(email, group_name, PictureType.GROUP):
                    errors.append(
                        f'Sie haben bereits ein Gruppenbild für die Gruppe "{group_name}" '
                        "bestellt. Pro Familie ist nur ein Gruppenbild pro Gruppe erlaubt."
                    )

            if order_vorschul_picture and group_name:
                if not child_is_vorschueler:
                    errors.append(
                        "Um ein Vorschüler-Bild zu bestellen, muss Ihr Kind als "
                        "Vorschüler markiert sein."
                    )
                elif await self.has_existing_claim(email, group_name, PictureType.VORSCHUL):
                    errors.append(
                        f'Sie haben bereits ein Vorschüler-Bild für die Gruppe "{group_name}" '
                        "bestellt. Pro Familie ist nur ein Vorschüler-Bild pro Gruppe erlaubt."
                    )
        except PictureClaimError:
            return PictureOrderValidation(
                valid=False,
                errors=[
                    "Fehler bei der Validierung der Bildbestellung. "
                    "Bitte versuchen Sie es später erneut."
                ],
            )

        return PictureOrderValidation(valid=not errors, errors=errors)
