"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends

from adsync.api_server.dependencies import ServiceContainer, get_services
from adsync.common.config import get_settings
from adsync.schemas.response import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(services: ServiceContainer = Depends(get_services)) -> HealthResponse:
    """
    Health check endpoint.

    Returns service status and database health.
    """
    settings = get_settings()
    db_healthy = await services.database.health_check()

    return HealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        database=db_healthy,
    )


@router.get("/ping")
async def ping() -> dict:
    """Simple ping endpoint."""
    return {"pong": True}


@router.get("/ready")
async def readiness_check(services: ServiceContainer = Depends(get_services)) -> dict:
    """Readiness check for Kubernetes."""
    if not await services.database.health_check():
        return {"ready": False, "reason": "Database not ready"}

    return {"ready": True}


@router.get("/live")
async def liveness_check() -> dict:
    """Liveness check for Kubernetes."""
    return {"alive": True}
