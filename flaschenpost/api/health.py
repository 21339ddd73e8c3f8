"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from flaschenpost.core.config import settings
from flaschenpost.core.deps import get_db, get_email_service
from flaschenpost.services.email_service import EmailService

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    email: EmailService = Depends(get_email_service),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Checks database connectivity and whether SMTP credentials are present.
    Missing email configuration degrades the service instead of failing it,
    since reservations still work without confirmation emails.
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "version": settings.version,
        "environment": settings.environment,
        "checks": {},
    }

    # Check database connection
    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"

    if email.is_configured:
        health_status["checks"]["email"] = "configured"
    else:
        health_status["checks"]["email"] = "not configured"
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"

    health_status["checks"]["reservations"] = (
        "maintenance"
        if settings.maintenance_mode
        else "enabled"
        if settings.enable_reservations
        else "disabled"
    )

    return health_status


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness probe for container orchestration.

    Simple check that the service is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """
    Readiness probe for container orchestration.

    Checks if the database accepts queries.
    """
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"database unavailable: {e}",
        ) from e

    return {"status": "ready"}
