"""
Health check endpoint.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.schemas.common import HealthCheckResponse, HealthStatus
from core.config import Settings, get_settings

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "",
    response_model=HealthCheckResponse,
    summary="Basic health check",
    description="Quick health check endpoint for load balancers and container orchestration.",
)
async def health_check(
    settings: Settings = Depends(get_settings),
) -> HealthCheckResponse:
    """
    Basic health check.

    Reports degraded when no provider has credentials configured.
    """
    providers = {
        "google": settings.is_google_configured,
        "replicate": settings.is_replicate_configured,
    }
    status = HealthStatus.HEALTHY if any(providers.values()) else HealthStatus.DEGRADED

    return HealthCheckResponse(
        status=status,
        service=settings.app_name,
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc),
        providers=providers,
    )
