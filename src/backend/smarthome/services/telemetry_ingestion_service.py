"""Telemetry ingestion service for validating and persisting device readings.

Accepts a single reading or a batch, validates every item (strict mode) or
maps it as-is (lenient mode), bulk-inserts the batch, upserts the device
registry, and hands the stored readings to the live-update channel.
"""

import math
from typing import Any, Literal

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smarthome.core.config import settings
from smarthome.core.timeutils import InvalidTimestampError, parse_timestamp
from smarthome.models.telemetry_reading import TelemetryReading
from smarthome.services.broadcast import ConnectionManager
from smarthome.services.device_registry_service import DeviceRegistryService
from smarthome.services.telemetry_query_service import serialize_reading

logger = structlog.get_logger()

UpsertPolicy = Literal["first", "latest"]

_REQUIRED_STRINGS = ("deviceId", "unit", "location", "deviceType")


class TelemetryIngestionError(Exception):
    """Telemetry batch rejected by validation.

    ``errors`` holds one ``{"index", "error"}`` entry per invalid item.
    """

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        total_attempted: int = 0,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.total_attempted = total_attempted


class EmptyBatchError(TelemetryIngestionError):
    """No readings in the request."""
    pass


class BatchTooLargeError(TelemetryIngestionError):
    """More readings than a single request may carry."""
    pass


class TelemetryPersistenceError(Exception):
    """The store refused or failed the batch; nothing from it was persisted."""
    pass


def validate_reading(reading: Any) -> str | None:
    """Return the first rule a reading breaks, or None if it is valid."""
    if not isinstance(reading, dict):
        return "Reading must be a non-null object."

    device_id = reading.get("deviceId")
    if not isinstance(device_id, str) or not device_id.strip():
        return "deviceId must be a non-empty string."

    timestamp = reading.get("timestamp")
    if not isinstance(timestamp, str):
        return "timestamp must be a valid ISO date string."
    try:
        parse_timestamp(timestamp)
    except InvalidTimestampError:
        return "timestamp must be a valid ISO date string."

    value = reading.get("reading")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return "reading must be a number."

    for key in _REQUIRED_STRINGS[1:]:
        field_value = reading.get(key)
        if not isinstance(field_value, str) or not field_value.strip():
            return f"{key} must be a non-empty string."

    return None


def select_representatives(
    readings: list[TelemetryReading], policy: UpsertPolicy = "first"
) -> list[TelemetryReading]:
    """Pick the reading that drives each device's registry row.

    ``first`` keeps the first reading per device in insertion order;
    ``latest`` keeps the one with the greatest timestamp, earlier items
    winning ties. Devices come back in order of first appearance.
    """
    chosen: dict[str, TelemetryReading] = {}
    for reading in readings:
        current = chosen.get(reading.device_id)
        if current is None:
            chosen[reading.device_id] = reading
        elif policy == "latest" and reading.timestamp > current.timestamp:
            chosen[reading.device_id] = reading
    return list(chosen.values())


class TelemetryIngestionService:
    """Validates and persists telemetry batches, then notifies subscribers."""

    def __init__(
        self,
        db: AsyncSession,
        connections: ConnectionManager | None = None,
        strict: bool | None = None,
        upsert_policy: UpsertPolicy | None = None,
        max_batch_size: int | None = None,
    ):
        self.db = db
        self.connections = connections
        self.strict = settings.strict_ingest_validation if strict is None else strict
        self.upsert_policy = upsert_policy or settings.registry_upsert_policy
        self.max_batch_size = max_batch_size or settings.ingest_max_batch_size
        self.registry = DeviceRegistryService(db)

    async def ingest(self, payload: Any) -> list[TelemetryReading]:
        """Validate, store and broadcast one request body.

        Args:
            payload: A reading object or a list of reading objects.

        Returns:
            The stored readings, in request order.

        Raises:
            TelemetryIngestionError: If the batch is empty, too large, or any
                item fails validation. Nothing is stored.
            TelemetryPersistenceError: If the store fails. Nothing is stored.
        """
        items = payload if isinstance(payload, list) else [payload]

        if not items:
            raise EmptyBatchError("No telemetry data provided.")
        if len(items) > self.max_batch_size:
            raise BatchTooLargeError(
                f"Batch of {len(items)} readings exceeds the limit of {self.max_batch_size}.",
                total_attempted=len(items),
            )

        if self.strict:
            errors = [
                {"index": index, "error": error}
                for index, error in enumerate(map(validate_reading, items))
                if error is not None
            ]
            if errors:
                logger.warning(
                    "Telemetry validation failed",
                    total_attempted=len(items),
                    failed_count=len(errors),
                )
                raise TelemetryIngestionError(
                    "One or more telemetry readings failed validation.",
                    errors=errors,
                    total_attempted=len(items),
                )

        readings = await self._persist(items)
        self._broadcast(readings)

        logger.info("Telemetry ingested", count=len(readings))
        return readings

    async def _persist(self, items: list[Any]) -> list[TelemetryReading]:
        """Insert the batch and upsert the registry in one transaction."""
        try:
            readings = [self._to_row(item) for item in items]
            self.db.add_all(readings)
            await self.db.flush()

            for reading in select_representatives(readings, self.upsert_policy):
                await self.registry.upsert_from_reading(reading, commit=False)

            await self.db.commit()
        except (SQLAlchemyError, ValueError, TypeError, AttributeError) as e:
            await self.db.rollback()
            logger.error("Telemetry persistence failed", error=str(e))
            raise TelemetryPersistenceError(str(e)) from e

        return readings

    @staticmethod
    def _to_row(item: dict[str, Any]) -> TelemetryReading:
        """Map a request item onto a row.

        Lenient mode reaches here unvalidated: values are coerced the way the
        store would, and missing fields are left for the NOT NULL constraints
        to reject.
        """
        timestamp = item.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = parse_timestamp(timestamp)

        value = item.get("reading")
        if value is not None:
            value = float(value)
            if not math.isfinite(value):
                raise ValueError(f"reading must be finite, got {value}")

        return TelemetryReading(
            device_id=item.get("deviceId"),
            timestamp=timestamp,
            reading=value,
            unit=item.get("unit") or "W",
            location=item.get("location"),
            device_type=item.get("deviceType"),
        )

    def _broadcast(self, readings: list[TelemetryReading]) -> None:
        if self.connections is None:
            logger.warning("Live-update channel not initialised, skipping broadcast")
            return
        delivered = self.connections.publish_readings([serialize_reading(r) for r in readings])
        logger.debug("Broadcast readings", readings=len(readings), queued=delivered)
