"""Tests for the telemetry ingestion endpoint."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from starlette.websockets import WebSocketState

from smarthome.core.config import settings
from smarthome.services.broadcast import ConnectionManager
from smarthome.services.telemetry_ingestion_service import TelemetryPersistenceError


class RecordingWebSocket:
    """Minimal stand-in for an accepted WebSocket that records sent frames."""

    def __init__(self):
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.sent = []

    async def accept(self):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, data: str):
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000):
        self.application_state = WebSocketState.DISCONNECTED


@pytest.mark.asyncio
class TestIngestEndpoint:
    """Tests for POST /devices/ingest."""

    async def test_ingest_single_reading(self, client: AsyncClient, make_payload):
        response = await client.post("/devices/ingest", json=make_payload())

        assert response.status_code == 202
        assert response.json() == {"message": "Telemetry accepted and processed.", "count": 1}

    async def test_ingest_batch(self, client: AsyncClient, make_payload):
        batch = [make_payload(device_id=f"plug-{i}") for i in range(3)]

        response = await client.post("/devices/ingest", json=batch)

        assert response.status_code == 202
        assert response.json()["count"] == 3

        listing = await client.get("/telemetry/readings")
        assert listing.json()["data"]["pagination"]["totalReadings"] == 3

    async def test_ingest_empty_batch(self, client: AsyncClient):
        response = await client.post("/devices/ingest", json=[])

        assert response.status_code == 400
        assert response.json()["message"] == "No telemetry data provided."

    async def test_invalid_item_rejects_batch(self, client: AsyncClient, make_payload):
        batch = [
            make_payload(),
            {**make_payload(), "timestamp": "not-a-date"},
            {**make_payload(), "reading": "lots"},
        ]

        response = await client.post("/devices/ingest", json=batch)

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "One or more telemetry readings failed validation."
        assert body["totalAttempted"] == 3
        assert body["failedCount"] == 2
        assert body["errors"] == [
            {"index": 1, "error": "timestamp must be a valid ISO date string."},
            {"index": 2, "error": "reading must be a number."},
        ]

        listing = await client.get("/telemetry/readings")
        assert listing.json()["data"]["pagination"]["totalReadings"] == 0
        devices = await client.get("/telemetry/metadata/devices")
        assert devices.json()["data"]["pagination"]["totalDevices"] == 0

    async def test_non_object_item_is_rejected(self, client: AsyncClient, make_payload):
        response = await client.post("/devices/ingest", json=[make_payload(), None])

        assert response.status_code == 400
        assert response.json()["errors"] == [
            {"index": 1, "error": "Reading must be a non-null object."}
        ]

    @pytest.mark.parametrize("literal", ["Infinity", "-Infinity", "NaN"])
    async def test_non_finite_reading_is_rejected(self, client: AsyncClient, literal):
        body = (
            '{"deviceId": "plug-1", "timestamp": "2025-01-01T00:00:00Z", '
            f'"reading": {literal}, "unit": "W", "location": "Kitchen", '
            '"deviceType": "smart_plug"}'
        )

        response = await client.post(
            "/devices/ingest",
            content=body,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["errors"] == [{"index": 0, "error": "reading must be a number."}]

        listing = await client.get("/telemetry/readings")
        assert listing.json()["data"]["pagination"]["totalReadings"] == 0

    async def test_batch_too_large(self, client: AsyncClient, make_payload, monkeypatch):
        monkeypatch.setattr(settings, "ingest_max_batch_size", 2)

        response = await client.post("/devices/ingest", json=[make_payload()] * 3)

        assert response.status_code == 413
        assert response.json()["totalAttempted"] == 3

    async def test_registry_is_idempotent_per_device(
        self, client: AsyncClient, make_payload, now
    ):
        for minutes in (3, 2, 1):
            response = await client.post(
                "/devices/ingest",
                json=make_payload(timestamp=now - timedelta(minutes=minutes), location="Office"),
            )
            assert response.status_code == 202

        response = await client.get("/telemetry/metadata/devices")

        data = response.json()["data"]
        assert data["pagination"]["totalDevices"] == 1
        device = data["devices"][0]
        assert device["deviceId"] == "plug-1"
        assert device["location"] == "Office"
        assert device["status"] == "online"

    async def test_summary_after_ingest(self, client: AsyncClient, make_payload, now):
        await client.post(
            "/devices/ingest",
            json=[make_payload(timestamp=now - timedelta(seconds=30), reading=100)],
        )

        response = await client.get("/telemetry/summary")

        body = response.json()
        assert body["totalUsage"] == "0.10"
        assert body["highestReading"] == "100.0"
        assert body["onlineDevices"] == 1
        assert body["totalDevices"] == 1
        assert body["unit"] == {"totalUsage": "kWh", "highestReading": "W"}

    async def test_readings_are_broadcast(
        self,
        client: AsyncClient,
        connection_manager: ConnectionManager,
        make_payload,
    ):
        socket = RecordingWebSocket()
        await connection_manager.connect(socket)
        batch = [make_payload(reading=1), make_payload(device_id="plug-2", reading=2)]

        response = await client.post("/devices/ingest", json=batch)
        await connection_manager.drain()

        assert response.status_code == 202
        events = [message["event"] for message in socket.sent]
        assert events == ["status", "telemetry:reading", "telemetry:reading"]
        assert [m["data"]["deviceId"] for m in socket.sent[1:]] == ["plug-1", "plug-2"]
        assert socket.sent[1]["data"]["reading"] == 1.0

        await connection_manager.close_all()

    async def test_rejected_batch_is_not_broadcast(
        self,
        client: AsyncClient,
        connection_manager: ConnectionManager,
        make_payload,
    ):
        socket = RecordingWebSocket()
        await connection_manager.connect(socket)

        await client.post("/devices/ingest", json=[{**make_payload(), "unit": ""}])
        await connection_manager.drain()

        assert [message["event"] for message in socket.sent] == ["status"]

        await connection_manager.close_all()

    async def test_persistence_failure(self, client: AsyncClient, make_payload):
        with patch(
            "smarthome.api.ingest.TelemetryIngestionService.ingest",
            new=AsyncMock(side_effect=TelemetryPersistenceError("disk full")),
        ):
            response = await client.post("/devices/ingest", json=make_payload())

        assert response.status_code == 500
        assert response.json() == {
            "message": "Failed to ingest data due to a server error",
            "error": "disk full",
        }

    async def test_lenient_mode_surfaces_store_errors(
        self, client: AsyncClient, make_payload, monkeypatch
    ):
        monkeypatch.setattr(settings, "strict_ingest_validation", False)
        item = make_payload()
        del item["location"]

        response = await client.post("/devices/ingest", json=[make_payload(), item])

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to ingest data due to a server error"

        listing = await client.get("/telemetry/readings")
        assert listing.json()["data"]["pagination"]["totalReadings"] == 0

    async def test_ingest_counters_exposed(self, client: AsyncClient, make_payload):
        await client.post("/devices/ingest", json=[make_payload(), make_payload()])
        await client.post("/devices/ingest", json=[])

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "smarthome_readings_ingested_total" in response.text
        assert 'smarthome_ingest_rejected_total{reason="empty"}' in response.text
