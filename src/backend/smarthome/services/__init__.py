"""Telemetry services."""

from smarthome.services.broadcast import ConnectionManager
from smarthome.services.device_registry_service import DeviceRegistryService, DeviceRegistryError
from smarthome.services.health_service import HealthService, health_service
from smarthome.services.pagination import Page, PageNotFoundError, PaginationError
from smarthome.services.telemetry_analytics_service import (
    BreakdownGroup,
    TelemetryAnalyticsService,
    TrendWindow,
)
from smarthome.services.telemetry_ingestion_service import (
    BatchTooLargeError,
    EmptyBatchError,
    TelemetryIngestionError,
    TelemetryIngestionService,
    TelemetryPersistenceError,
)
from smarthome.services.telemetry_query_service import TelemetryQueryService

__all__ = [
    "ConnectionManager",
    "DeviceRegistryService",
    "DeviceRegistryError",
    "HealthService",
    "health_service",
    "Page",
    "PageNotFoundError",
    "PaginationError",
    "BreakdownGroup",
    "TelemetryAnalyticsService",
    "TrendWindow",
    "BatchTooLargeError",
    "EmptyBatchError",
    "TelemetryIngestionError",
    "TelemetryIngestionService",
    "TelemetryPersistenceError",
    "TelemetryQueryService",
]
