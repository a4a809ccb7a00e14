"""Health check endpoints."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from intake_triage.api.deps import Registry
from intake_triage.rules.engine import get_flag_detector

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


class ReadinessResponse(HealthResponse):
    """Readiness response with loaded table versions."""

    flag_ruleset_version: str
    protocols_version: str


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Returns service health status",
)
async def health_check() -> HealthResponse:
    """Check if the service is healthy.

    Returns:
        Health status response
    """
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns service readiness status for k8s probes",
)
def readiness_check(registry: Registry) -> ReadinessResponse:
    """Check the flag rules and crisis protocols are loaded.

    Returns:
        Readiness status response
    """
    try:
        detector = get_flag_detector()
        snapshot = registry.snapshot
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Not ready: {e}",
        )

    return ReadinessResponse(
        status="ok",
        flag_ruleset_version=detector.ruleset_version,
        protocols_version=snapshot.version,
    )
