"""Smart-home telemetry FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from smarthome.api import router as api_router
from smarthome.core.config import settings
from smarthome.core.deps import engine
from smarthome.core.errors import ApiError, api_error_handler
from smarthome.core.logging import configure_logging
from smarthome.services.broadcast import ConnectionManager

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    logger.info("Starting telemetry backend", environment=settings.environment, port=settings.port)

    app.state.connection_manager = ConnectionManager()
    logger.info("Live-update channel initialised", path="/ws/telemetry")

    yield

    # Shutdown
    logger.info("Shutting down telemetry backend")

    await app.state.connection_manager.close_all()
    logger.info("Live-update connections closed")

    await engine.dispose()


app = FastAPI(
    title="Smart Home Telemetry API",
    description="Telemetry ingestion, analytics and live updates for the smart-home dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

app.add_exception_handler(ApiError, api_error_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    # Convert errors to JSON-serializable format
    errors = []
    for error in exc.errors():
        err = {
            "loc": error.get("loc"),
            "msg": str(error.get("msg")),
            "type": error.get("type"),
        }
        errors.append(err)

    logger.warning("Validation error", path=str(request.url.path), errors=errors)
    return JSONResponse(
        status_code=422,
        content={"message": "Request validation failed.", "detail": errors},
    )


# Set up Prometheus metrics instrumentation
if settings.metrics_enabled:
    from smarthome.core.metrics import setup_metrics, expose_metrics

    _instrumentator = setup_metrics(app)
    expose_metrics(app, _instrumentator)
