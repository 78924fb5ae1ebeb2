"""Database models."""

from smarthome.models.base import Base, TimestampMixin
from smarthome.models.telemetry_reading import TelemetryReading
from smarthome.models.device_metadata import DeviceMetadata, DeviceStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "TelemetryReading",
    "DeviceMetadata",
    "DeviceStatus",
]
