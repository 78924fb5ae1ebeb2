"""Telemetry query service for reading stored telemetry data.

Provides the paginated, filterable readings listing. Aggregate views live in
``telemetry_analytics_service``.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from smarthome.core.timeutils import isoformat_utc
from smarthome.models.telemetry_reading import TelemetryReading
from smarthome.services.pagination import Page, paginate


def serialize_reading(row: TelemetryReading) -> dict[str, Any]:
    """Public JSON shape of a stored reading."""
    return {
        "id": row.id,
        "deviceId": row.device_id,
        "timestamp": isoformat_utc(row.timestamp),
        "reading": row.reading,
        "unit": row.unit,
        "location": row.location,
        "deviceType": row.device_type,
    }


class TelemetryQueryService:
    """Query readings with free-text search and an inclusive time range."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def query_readings(
        self,
        page: int = 1,
        limit: int = 20,
        search: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> Page:
        """Return one page of readings, most recent first.

        ``search`` matches deviceId, deviceType or location case-insensitively.
        Both time bounds are inclusive and independently optional.
        """
        query = select(TelemetryReading)

        if search:
            query = query.where(
                or_(
                    TelemetryReading.device_id.icontains(search, autoescape=True),
                    TelemetryReading.device_type.icontains(search, autoescape=True),
                    TelemetryReading.location.icontains(search, autoescape=True),
                )
            )
        if start_time:
            query = query.where(TelemetryReading.timestamp >= start_time)
        if end_time:
            query = query.where(TelemetryReading.timestamp <= end_time)

        query = query.order_by(TelemetryReading.timestamp.desc(), TelemetryReading.id.desc())

        return await paginate(self.db, query, page, limit)
