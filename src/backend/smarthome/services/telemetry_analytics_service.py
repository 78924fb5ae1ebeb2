"""Aggregate views over stored readings: summary, trends and breakdowns.

Time buckets are computed in the database. ``hour_bucket`` and
``day_bucket`` compile to ``to_char`` on PostgreSQL and ``strftime`` on
SQLite, always in UTC.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import String, func, select
from sqlalchemy.exc import CompileError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

from smarthome.core.config import settings
from smarthome.core.timeutils import isoformat_utc, utcnow
from smarthome.models.telemetry_reading import TelemetryReading
from smarthome.services.device_registry_service import DeviceRegistryService

SUMMARY_WINDOW = timedelta(hours=24)
BREAKDOWN_WINDOW = timedelta(days=7)


class hour_bucket(FunctionElement):
    """``YYYY-MM-DDTHH`` label of a timestamp column."""

    type = String()
    inherit_cache = True


class day_bucket(FunctionElement):
    """``YYYY-MM-DD`` label of a timestamp column."""

    type = String()
    inherit_cache = True


@compiles(hour_bucket)
@compiles(day_bucket)
def _compile_bucket_default(element, compiler, **kw):
    raise CompileError(f"Time buckets are not supported on {compiler.dialect.name}")


@compiles(hour_bucket, "postgresql")
def _compile_hour_bucket_pg(element, compiler, **kw):
    return "to_char(%s AT TIME ZONE 'UTC', 'YYYY-MM-DD\"T\"HH24')" % compiler.process(
        element.clauses, **kw
    )


@compiles(day_bucket, "postgresql")
def _compile_day_bucket_pg(element, compiler, **kw):
    return "to_char(%s AT TIME ZONE 'UTC', 'YYYY-MM-DD')" % compiler.process(
        element.clauses, **kw
    )


@compiles(hour_bucket, "sqlite")
def _compile_hour_bucket_sqlite(element, compiler, **kw):
    return "strftime('%%Y-%%m-%%dT%%H', %s)" % compiler.process(element.clauses, **kw)


@compiles(day_bucket, "sqlite")
def _compile_day_bucket_sqlite(element, compiler, **kw):
    return "strftime('%%Y-%%m-%%d', %s)" % compiler.process(element.clauses, **kw)


class TrendWindow(str, Enum):
    """Trailing window for trend charts."""

    DAY = "24h"
    WEEK = "7d"


class BreakdownGroup(str, Enum):
    """Supported breakdown groupings."""

    LOCATION = "location"
    CATEGORY = "category"


# Grouping selector -> (public field name, column). Never built from user text.
BREAKDOWN_FIELDS = {
    BreakdownGroup.LOCATION: ("location", TelemetryReading.location),
    BreakdownGroup.CATEGORY: ("deviceType", TelemetryReading.device_type),
}


def trend_window_start(window: TrendWindow, now: datetime) -> datetime:
    """Start of the window, aligned to a bucket boundary.

    The current (partial) bucket counts as one, so a 24h window spans at
    most 24 hourly buckets and a 7d window at most 7 daily ones.
    """
    if window == TrendWindow.WEEK:
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return today - timedelta(days=6)
    this_hour = now.replace(minute=0, second=0, microsecond=0)
    return this_hour - timedelta(hours=23)


def kilo_unit(unit: str) -> str:
    """Energy unit for summed power readings, e.g. W -> kWh."""
    return f"k{unit}h"


class TelemetryAnalyticsService:
    """Summary, trend and breakdown aggregations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_summary(self, now: datetime | None = None) -> dict[str, Any]:
        """Usage totals over the trailing 24 hours plus device counts."""
        now = now or utcnow()

        result = await self.db.execute(
            select(
                func.sum(TelemetryReading.reading).label("total"),
                func.max(TelemetryReading.reading).label("highest"),
                func.min(TelemetryReading.unit).label("base_unit"),
            ).where(TelemetryReading.timestamp >= now - SUMMARY_WINDOW)
        )
        row = result.one()

        base_unit = row.base_unit or settings.base_power_unit
        total_usage = f"{row.total / 1000:.2f}" if row.total is not None else "0.00"
        highest_reading = f"{row.highest:.1f}" if row.highest is not None else "0.0"

        registry = DeviceRegistryService(self.db)
        online_devices = await registry.count_online(settings.online_window_seconds, now=now)
        total_devices = await registry.count_devices()

        return {
            "totalUsage": total_usage,
            "onlineDevices": online_devices,
            "totalDevices": total_devices,
            "highestReading": highest_reading,
            "unit": {
                "totalUsage": kilo_unit(base_unit),
                "highestReading": base_unit,
            },
            "timestamp": isoformat_utc(now),
        }

    async def get_trends(
        self,
        window: TrendWindow = TrendWindow.DAY,
        unit_type: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Sum readings of one unit per hour (24h) or per day (7d), oldest first.

        Readings in the base power unit are reported in kilo-units under
        ``usageKWh``; any other unit is summed raw under ``totalReading``.
        """
        now = now or utcnow()
        unit_type = unit_type or settings.base_power_unit
        is_power = unit_type == settings.base_power_unit

        if window == TrendWindow.WEEK:
            bucket = day_bucket(TelemetryReading.timestamp)
            granularity = "day"
        else:
            bucket = hour_bucket(TelemetryReading.timestamp)
            granularity = "hour"

        query = (
            select(bucket.label("time_label"), func.sum(TelemetryReading.reading).label("total"))
            .where(
                TelemetryReading.timestamp >= trend_window_start(window, now),
                TelemetryReading.unit == unit_type,
            )
            .group_by(bucket)
            .order_by(bucket)
        )
        result = await self.db.execute(query)

        data_key = "usageKWh" if is_power else "totalReading"
        data = [
            {
                "timeLabel": row.time_label,
                data_key: row.total / 1000 if is_power else row.total,
            }
            for row in result
        ]

        return {
            "window": window.value,
            "unit": "kWh" if is_power else unit_type,
            "dataKey": data_key,
            "granularity": granularity,
            "data": data,
        }

    async def get_breakdown(
        self,
        group: BreakdownGroup = BreakdownGroup.LOCATION,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Base-unit usage over the trailing 7 days, per location or device type."""
        now = now or utcnow()
        field_name, column = BREAKDOWN_FIELDS[group]

        query = (
            select(column.label("name"), func.sum(TelemetryReading.reading).label("total"))
            .where(
                TelemetryReading.timestamp >= now - BREAKDOWN_WINDOW,
                TelemetryReading.unit == settings.base_power_unit,
                column.is_not(None),
            )
            .group_by(column)
            .order_by(column)
        )
        result = await self.db.execute(query)

        return {
            "groupBy": field_name,
            "unit": "kWh",
            "data": [{"name": row.name, "value": row.total / 1000} for row in result],
        }
