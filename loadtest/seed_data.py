#!/usr/bin/env python3
"""Seed a week of telemetry for load testing and dashboard demos.

Creates readings every 15 minutes for a fleet of devices over the trailing
7 days, going through the ingestion service so the device registry is
populated the same way live traffic populates it.

Run BEFORE load tests, against a migrated database.
"""

import asyncio
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add backend to Python path
backend_path = Path(__file__).parent.parent / "src" / "backend"
sys.path.insert(0, str(backend_path))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from smarthome.core.config import get_settings
from smarthome.core.timeutils import isoformat_utc
from smarthome.services.telemetry_ingestion_service import TelemetryIngestionService

DEVICES = [
    ("kitchen-plug", "Kitchen", "smart_plug", "W", (5, 1800)),
    ("kitchen-fridge", "Kitchen", "appliance", "W", (80, 250)),
    ("living-tv", "Living Room", "entertainment", "W", (0, 180)),
    ("living-light", "Living Room", "light", "W", (0, 60)),
    ("bedroom-heater", "Bedroom", "heater", "W", (0, 2200)),
    ("bedroom-thermostat", "Bedroom", "thermostat", "C", (17, 23)),
    ("garage-charger", "Garage", "ev_charger", "W", (0, 7400)),
    ("office-desk", "Office", "smart_plug", "W", (20, 400)),
    ("bathroom-humidity", "Bathroom", "humidity_sensor", "%", (35, 90)),
]
INTERVAL = timedelta(minutes=15)
DAYS = 7
BATCH_SIZE = 500


def generate_history(now: datetime) -> list[dict]:
    """Readings for every device at every interval over the window."""
    readings = []
    at = now - timedelta(days=DAYS)
    while at <= now:
        for device_id, location, device_type, unit, (low, high) in DEVICES:
            readings.append({
                "deviceId": device_id,
                "timestamp": isoformat_utc(at),
                "reading": round(random.uniform(low, high), 2),
                "unit": unit,
                "location": location,
                "deviceType": device_type,
            })
        at += INTERVAL
    return readings


async def main():
    """Main seeding function."""
    print("\n" + "="*80)
    print("Smart Home Telemetry Data Seeding")
    print("="*80 + "\n")

    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    readings = generate_history(datetime.now(timezone.utc))

    async with async_session() as session:
        try:
            service = TelemetryIngestionService(session, strict=True, upsert_policy="latest")
            for start in range(0, len(readings), BATCH_SIZE):
                await service.ingest(readings[start:start + BATCH_SIZE])
                print(f"Ingested {min(start + BATCH_SIZE, len(readings))}/{len(readings)} readings")

            print("\n" + "="*80)
            print("Seeding Complete!")
            print("="*80)
            print(f"  - {len(DEVICES)} devices")
            print(f"  - {len(readings)} readings over {DAYS} days")
            print("="*80 + "\n")

        except Exception as e:
            print(f"\nERROR: {e}")
            raise
        finally:
            await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
