"""Pytest configuration and fixtures for telemetry backend tests."""

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from smarthome.main import app
from smarthome.models.base import Base
# Import all models to ensure they're registered with Base.metadata
from smarthome.models import TelemetryReading, DeviceMetadata, DeviceStatus
from smarthome.core.deps import get_db
from smarthome.services.broadcast import ConnectionManager

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine with shared connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def connection_manager() -> ConnectionManager:
    """Fresh live-update manager, attached to the app by the client fixture."""
    return ConnectionManager()


@pytest_asyncio.fixture(scope="function")
async def client(db_engine, connection_manager) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with async_session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.connection_manager = connection_manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.connection_manager


@pytest.fixture
def now() -> datetime:
    """Current time truncated to the second."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _make_payload(
    device_id: str = "plug-1",
    timestamp: datetime | str | None = None,
    reading: float = 100,
    unit: str = "W",
    location: str = "Kitchen",
    device_type: str = "smart_plug",
) -> dict:
    """Build an ingestion payload item."""
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
    if isinstance(timestamp, datetime):
        timestamp = timestamp.isoformat().replace("+00:00", "Z")
    return {
        "deviceId": device_id,
        "timestamp": timestamp,
        "reading": reading,
        "unit": unit,
        "location": location,
        "deviceType": device_type,
    }


@pytest.fixture
def make_payload():
    """Factory for ingestion payload items."""
    return _make_payload


@pytest_asyncio.fixture
async def seed_readings(db_session: AsyncSession):
    """Insert readings directly, bypassing ingestion."""

    async def _seed(*rows: dict) -> list[TelemetryReading]:
        readings = [
            TelemetryReading(
                device_id=row.get("device_id", "plug-1"),
                timestamp=row["timestamp"],
                reading=row.get("reading", 100.0),
                unit=row.get("unit", "W"),
                location=row.get("location", "Kitchen"),
                device_type=row.get("device_type", "smart_plug"),
            )
            for row in rows
        ]
        db_session.add_all(readings)
        await db_session.commit()
        return readings

    return _seed


@pytest_asyncio.fixture
async def seed_devices(db_session: AsyncSession):
    """Insert registry rows directly."""

    async def _seed(*rows: dict) -> list[DeviceMetadata]:
        devices = [
            DeviceMetadata(
                device_id=row["device_id"],
                name=row["device_id"],
                location=row.get("location", "Kitchen"),
                device_type=row.get("device_type", "smart_plug"),
                last_reported=row.get("last_reported", datetime.now(timezone.utc)),
                status=row.get("status", DeviceStatus.ONLINE),
            )
            for row in rows
        ]
        db_session.add_all(devices)
        await db_session.commit()
        return devices

    return _seed

