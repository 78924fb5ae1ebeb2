"""Telemetry reading model (append-only)."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from smarthome.models.base import Base


class TelemetryReading(Base):
    """One timestamped sample from one device.

    Rows are written once on ingest and never updated or deleted by the
    application. Do NOT inherit TimestampMixin: ``timestamp`` is the only time
    column.
    """

    __tablename__ = "telemetry_readings"
    __table_args__ = (
        Index("ix_telemetry_readings_timestamp_device_id", "timestamp", "device_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    device_id: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reading: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False, default="W")
    location: Mapped[str] = mapped_column(Text, nullable=False)
    device_type: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<TelemetryReading(device_id={self.device_id}, timestamp={self.timestamp}, "
            f"reading={self.reading}{self.unit})>"
        )
