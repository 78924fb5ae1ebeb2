"""Telemetry query REST API endpoints.

Read-only views for the dashboard: paginated readings and device listings,
plus 24h summary, trend and breakdown aggregates.
"""

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError

from smarthome.core.config import settings
from smarthome.core.deps import DbSession
from smarthome.core.errors import ApiError
from smarthome.core.timeutils import InvalidTimestampError, parse_timestamp
from smarthome.services.device_registry_service import DeviceRegistryService, serialize_device
from smarthome.services.pagination import PageNotFoundError, PaginationError
from smarthome.services.telemetry_analytics_service import (
    BreakdownGroup,
    TelemetryAnalyticsService,
    TrendWindow,
)
from smarthome.services.telemetry_query_service import TelemetryQueryService, serialize_reading

logger = structlog.get_logger()

router = APIRouter(tags=["Telemetry"])


class CamelModel(BaseModel):
    """Response model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReadingPoint(CamelModel):
    """Single stored telemetry reading."""

    id: int
    device_id: str
    timestamp: str
    reading: float
    unit: str
    location: str
    device_type: str


class ReadingsPagination(CamelModel):
    current_page: int
    total_pages: int
    total_readings: int
    limit: int


class ReadingsPage(CamelModel):
    readings: list[ReadingPoint]
    pagination: ReadingsPagination


class ReadingsResponse(CamelModel):
    """Paginated readings response."""

    status: str = "success"
    data: ReadingsPage


class DeviceSummary(CamelModel):
    """Registry row as shown in the device table."""

    device_id: str
    location: str
    device_type: str
    status: str
    last_reported: str


class DevicesPagination(CamelModel):
    current_page: int
    total_pages: int
    total_devices: int
    limit: int


class DevicesPage(CamelModel):
    devices: list[DeviceSummary]
    pagination: DevicesPagination


class DevicesResponse(CamelModel):
    """Paginated device list response."""

    status: str = "success"
    data: DevicesPage


class SummaryUnits(CamelModel):
    total_usage: str
    highest_reading: str


class SummaryResponse(CamelModel):
    """Key metrics over the trailing 24 hours."""

    total_usage: str
    online_devices: int
    total_devices: int
    highest_reading: str
    unit: SummaryUnits
    timestamp: str


class TrendResponse(CamelModel):
    """Bucketed usage series; each point carries ``timeLabel`` and ``dataKey``."""

    window: str
    unit: str
    data_key: str
    granularity: str
    data: list[dict[str, Any]]


class BreakdownItem(CamelModel):
    name: str
    value: float


class BreakdownResponse(CamelModel):
    """Usage per location or device type over the trailing 7 days."""

    group_by: str
    unit: str
    data: list[BreakdownItem]


def _parse_bound(value: str | None, param: str) -> datetime | None:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except InvalidTimestampError:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            f"Invalid {param} format. Must be an ISO 8601 date string or Unix timestamp.",
        )


def _server_error(message: str, error: SQLAlchemyError) -> ApiError:
    logger.error(message, error=str(error))
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, message, error=str(error))


@router.get("/readings", response_model=ReadingsResponse)
async def list_readings(
    db: DbSession,
    page: int = 1,
    limit: int = settings.default_page_size,
    search: str | None = None,
    start_timestamp: str | None = Query(default=None, alias="startTimestamp"),
    end_timestamp: str | None = Query(default=None, alias="endTimestamp"),
):
    """Paginated readings, newest first, with text search and time range."""
    start_time = _parse_bound(start_timestamp, "startTimestamp")
    end_time = _parse_bound(end_timestamp, "endTimestamp")

    service = TelemetryQueryService(db)
    try:
        result = await service.query_readings(
            page=page,
            limit=limit,
            search=search,
            start_time=start_time,
            end_time=end_time,
        )
    except PaginationError as e:
        raise ApiError(status.HTTP_400_BAD_REQUEST, str(e))
    except PageNotFoundError as e:
        raise ApiError(status.HTTP_404_NOT_FOUND, str(e))
    except SQLAlchemyError as e:
        raise _server_error("Failed to fetch telemetry readings", e)

    return {
        "status": "success",
        "data": {
            "readings": [serialize_reading(row) for row in result.items],
            "pagination": {
                "currentPage": result.current_page,
                "totalPages": result.total_pages,
                "totalReadings": result.total,
                "limit": result.limit,
            },
        },
    }


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(db: DbSession):
    """Total usage, peak reading and device counts."""
    try:
        return await TelemetryAnalyticsService(db).get_summary()
    except SQLAlchemyError as e:
        raise _server_error("Failed to calculate summary metrics", e)


@router.get("/trends/total", response_model=TrendResponse)
async def get_trends(
    db: DbSession,
    window: TrendWindow = TrendWindow.DAY,
    unit_type: str | None = Query(default=None, alias="unitType"),
):
    """Hourly (24h) or daily (7d) usage series for one unit."""
    unit_type = unit_type or settings.base_power_unit
    try:
        return await TelemetryAnalyticsService(db).get_trends(window=window, unit_type=unit_type)
    except SQLAlchemyError as e:
        raise _server_error(f"Failed to calculate trends for unit {unit_type}", e)


@router.get("/breakdown", response_model=BreakdownResponse)
async def get_breakdown(
    db: DbSession,
    by: BreakdownGroup = BreakdownGroup.LOCATION,
):
    """Usage split by location or by device category."""
    try:
        return await TelemetryAnalyticsService(db).get_breakdown(group=by)
    except SQLAlchemyError as e:
        raise _server_error(f"Failed to calculate usage breakdown by {by.value}", e)


@router.get("/metadata/devices", response_model=DevicesResponse)
async def list_devices(
    db: DbSession,
    page: int = 1,
    limit: int = settings.default_page_size,
    search: str | None = None,
    sort: str | None = None,
    order: str | None = None,
):
    """Paginated device registry, sortable by a fixed set of fields."""
    service = DeviceRegistryService(db)
    try:
        result = await service.list_devices(
            page=page,
            limit=limit,
            search=search,
            sort=sort,
            order=order,
        )
    except PaginationError as e:
        raise ApiError(status.HTTP_400_BAD_REQUEST, str(e))
    except PageNotFoundError as e:
        raise ApiError(status.HTTP_404_NOT_FOUND, str(e))
    except SQLAlchemyError as e:
        raise _server_error("Failed to fetch device list", e)

    return {
        "status": "success",
        "data": {
            "devices": [serialize_device(device) for device in result.items],
            "pagination": {
                "currentPage": result.current_page,
                "totalPages": result.total_pages,
                "totalDevices": result.total,
                "limit": result.limit,
            },
        },
    }
