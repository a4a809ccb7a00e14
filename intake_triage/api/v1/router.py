"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from intake_triage.api.v1 import alerts, health, intake, protocols

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Patient intake
api_router.include_router(
    intake.router,
    tags=["intake"],
)

# Crisis alerts
api_router.include_router(
    alerts.router,
    tags=["alerts"],
)

# Crisis protocol configuration
api_router.include_router(
    protocols.router,
    tags=["protocols"],
)
