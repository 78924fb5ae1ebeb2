"""Device registry: one row per device, derived from ingested readings."""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from smarthome.core.timeutils import isoformat_utc, utcnow
from smarthome.models.device_metadata import DeviceMetadata, DeviceStatus
from smarthome.models.telemetry_reading import TelemetryReading
from smarthome.services.pagination import Page, paginate

# Public sort keys mapped to registry columns
SORT_FIELDS = {
    "deviceId": DeviceMetadata.name,
    "location": DeviceMetadata.location,
    "deviceType": DeviceMetadata.device_type,
    "lastReported": DeviceMetadata.last_reported,
    "status": DeviceMetadata.status,
}
DEFAULT_SORT = "lastReported"

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class DeviceRegistryError(Exception):
    """Device registry errors."""
    pass


def serialize_device(device: DeviceMetadata) -> dict[str, Any]:
    status = device.status.value if hasattr(device.status, "value") else device.status
    return {
        "deviceId": device.name,
        "location": device.location,
        "deviceType": device.device_type,
        "status": status,
        "lastReported": isoformat_utc(device.last_reported),
    }


class DeviceRegistryService:
    """Atomic upserts and paginated listing over the device registry."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert_from_reading(self, reading: TelemetryReading, commit: bool = True) -> None:
        """Create or update the registry row for ``reading.device_id``.

        Issued as a single ``INSERT ... ON CONFLICT DO UPDATE`` so concurrent
        ingestion for one device cannot lose updates. Status is always reset
        to online.
        """
        insert = self._insert_construct()
        values = {
            "device_id": reading.device_id,
            "name": reading.device_id,
            "location": reading.location,
            "device_type": reading.device_type,
            "last_reported": reading.timestamp,
            "status": DeviceStatus.ONLINE,
        }
        stmt = insert(DeviceMetadata).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DeviceMetadata.device_id],
            set_={
                "name": stmt.excluded.name,
                "location": stmt.excluded.location,
                "device_type": stmt.excluded.device_type,
                "last_reported": stmt.excluded.last_reported,
                "status": stmt.excluded.status,
                "updated_at": func.now(),
            },
        )
        await self.db.execute(stmt)

        if commit:
            await self.db.commit()

    async def get_device(self, device_id: str) -> DeviceMetadata | None:
        """Get registry row by device id."""
        result = await self.db.execute(
            select(DeviceMetadata).where(DeviceMetadata.device_id == device_id)
        )
        return result.scalar_one_or_none()

    async def list_devices(
        self,
        page: int = 1,
        limit: int = 20,
        search: str | None = None,
        sort: str | None = None,
        order: str | None = None,
    ) -> Page:
        """List registry rows with free-text search over name and type.

        Unknown sort keys fall back to ``lastReported``; any order other than
        ``asc`` sorts descending.
        """
        query = select(DeviceMetadata)

        if search:
            query = query.where(
                or_(
                    DeviceMetadata.name.icontains(search, autoescape=True),
                    DeviceMetadata.device_type.icontains(search, autoescape=True),
                )
            )

        column = SORT_FIELDS.get(sort or DEFAULT_SORT, SORT_FIELDS[DEFAULT_SORT])
        ordering = column.asc() if order == "asc" else column.desc()
        query = query.order_by(ordering, DeviceMetadata.device_id)

        return await paginate(self.db, query, page, limit)

    async def count_devices(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(DeviceMetadata))
        return result.scalar() or 0

    async def count_online(self, window_seconds: int, now: datetime | None = None) -> int:
        """Count devices marked online that also reported within the window."""
        since = (now or utcnow()) - timedelta(seconds=window_seconds)
        result = await self.db.execute(
            select(func.count())
            .select_from(DeviceMetadata)
            .where(
                DeviceMetadata.status == DeviceStatus.ONLINE,
                DeviceMetadata.last_reported >= since,
            )
        )
        return result.scalar() or 0

    def _insert_construct(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_INSERTS[dialect]
        except KeyError:
            raise DeviceRegistryError(f"Atomic upsert is not supported on {dialect}")
