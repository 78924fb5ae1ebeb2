"""HTTP telemetry ingestion endpoint.

Devices POST a single reading or a batch. Readings are validated, stored,
folded into the device registry and pushed to live-update subscribers
before the response is sent.
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Body, status
from pydantic import BaseModel

from smarthome.core.deps import DbSession, LiveConnections
from smarthome.core.errors import ApiError
from smarthome.core.metrics import record_ingest_rejected, record_readings_ingested
from smarthome.services.telemetry_ingestion_service import (
    BatchTooLargeError,
    EmptyBatchError,
    TelemetryIngestionError,
    TelemetryIngestionService,
    TelemetryPersistenceError,
)

logger = structlog.get_logger()

router = APIRouter(tags=["Ingestion"])


class TelemetryIngestResponse(BaseModel):
    """Response for accepted telemetry."""

    message: str
    count: int


@router.post(
    "/ingest",
    response_model=TelemetryIngestResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def ingest_telemetry(
    payload: Annotated[Any, Body()],
    db: DbSession,
    connections: LiveConnections,
):
    """Ingest one reading object or an array of readings.

    The whole batch is rejected if any item is invalid; nothing is stored.
    """
    service = TelemetryIngestionService(db, connections=connections)

    try:
        readings = await service.ingest(payload)
    except EmptyBatchError as e:
        record_ingest_rejected("empty")
        raise ApiError(status.HTTP_400_BAD_REQUEST, e.message)
    except BatchTooLargeError as e:
        record_ingest_rejected("too_large")
        raise ApiError(
            status.HTTP_413_CONTENT_TOO_LARGE,
            e.message,
            totalAttempted=e.total_attempted,
        )
    except TelemetryIngestionError as e:
        record_ingest_rejected("validation")
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            e.message,
            totalAttempted=e.total_attempted,
            failedCount=len(e.errors),
            errors=e.errors,
        )
    except TelemetryPersistenceError as e:
        record_ingest_rejected("persistence")
        logger.error("Ingestion error", error=str(e))
        raise ApiError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to ingest data due to a server error",
            error=str(e),
        )

    record_readings_ingested(len(readings))
    return TelemetryIngestResponse(
        message="Telemetry accepted and processed.",
        count=len(readings),
    )
