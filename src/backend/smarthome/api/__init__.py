"""API Routes Module."""

from fastapi import APIRouter

from smarthome.api import health, ingest, live, telemetry

router = APIRouter()

router.include_router(health.router)
router.include_router(ingest.router, prefix="/devices")
router.include_router(telemetry.router, prefix="/telemetry")
router.include_router(live.router)
