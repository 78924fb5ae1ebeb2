"""Liveness and readiness endpoints."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from smarthome.core.deps import DbSession
from smarthome.services.health_service import HealthStatus, health_service

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Liveness check: reports if application is running."""
    return health_service.get_liveness()


@router.get("/health/ready")
async def readiness_check(db: DbSession):
    """Readiness check: reports if application can serve traffic."""
    result = await health_service.get_readiness(db)
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if result.status == HealthStatus.UNHEALTHY
        else status.HTTP_200_OK
    )
    return JSONResponse(status_code=status_code, content=result.to_dict())
