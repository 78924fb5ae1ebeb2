"""Device registry model: latest-known state per device."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from smarthome.models.base import Base, TimestampMixin


class DeviceStatus(str, Enum):
    """Device operational status."""

    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"


class DeviceMetadata(Base, TimestampMixin):
    """One row per device, upserted from ingested readings."""

    __tablename__ = "device_metadata"

    device_id: Mapped[str] = mapped_column(Text, primary_key=True)

    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    device_type: Mapped[str] = mapped_column(Text, nullable=False)
    last_reported: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    status: Mapped[DeviceStatus] = mapped_column(
        SQLEnum(
            DeviceStatus,
            name="device_status",
            values_callable=lambda x: [e.value for e in x],
            native_enum=False,
            length=16,
        ),
        default=DeviceStatus.ONLINE,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<DeviceMetadata(device_id={self.device_id}, status={self.status})>"
