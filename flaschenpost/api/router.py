"""API router combining all route modules."""

from fastapi import APIRouter

from flaschenpost.api import gdpr, health, magazines, reservations

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Magazine catalog (public, cacheable)
api_router.include_router(
    magazines.router,
    prefix="/magazines",
    tags=["magazines"],
)

# Reservations (rate limited)
api_router.include_router(
    reservations.router,
    prefix="/reservations",
    tags=["reservations"],
)

# Data-subject rights
api_router.include_router(
    gdpr.router,
    prefix="/gdpr",
    tags=["gdpr"],
)
