"""Locust load test suite for the smart-home telemetry backend.

Tests two user personas:
- DeviceFleet (70%): High-frequency telemetry batches to POST /devices/ingest
- DashboardViewer (30%): Polls summary, trends, breakdown and paginated lists

Target metrics:
- 5000 readings/sec ingested
- p95 latency < 200ms for dashboard queries
"""

import random
from datetime import datetime, timezone

from locust import between, events, task
from locust.contrib.fasthttp import FastHttpUser


LOCATIONS = ["Kitchen", "Living Room", "Bedroom", "Garage", "Office", "Bathroom"]
DEVICE_TYPES = {
    "smart_plug": ("W", 5, 2000),
    "heater": ("W", 500, 2500),
    "light": ("W", 3, 60),
    "thermostat": ("C", 16, 26),
    "humidity_sensor": ("%", 30, 70),
}


# ==================== Test Data Generators ====================

def generate_reading(device_index: int) -> dict:
    """Generate one realistic reading for a simulated device."""
    device_type = list(DEVICE_TYPES)[device_index % len(DEVICE_TYPES)]
    unit, low, high = DEVICE_TYPES[device_type]

    return {
        "deviceId": f"{device_type}-{device_index:04d}",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "reading": round(random.uniform(low, high), 2),
        "unit": unit,
        "location": LOCATIONS[device_index % len(LOCATIONS)],
        "deviceType": device_type,
    }


def generate_batch(size: int) -> list[dict]:
    """Generate a batch of readings from random devices."""
    return [generate_reading(random.randint(1, 500)) for _ in range(size)]


# ==================== User Classes ====================

class DeviceFleet(FastHttpUser):
    """Gateway pushing telemetry for a fleet of devices.

    Weight: 70% of traffic
    """

    weight = 7
    wait_time = between(0.1, 0.5)

    @task(10)
    def ingest_batch(self):
        """Post a batch of readings - primary task."""
        self.client.post(
            "/devices/ingest",
            json=generate_batch(random.randint(10, 50)),
            name="POST /devices/ingest (batch)",
        )

    @task(3)
    def ingest_single(self):
        """Post a single reading object."""
        self.client.post(
            "/devices/ingest",
            json=generate_reading(random.randint(1, 500)),
            name="POST /devices/ingest (single)",
        )


class DashboardViewer(FastHttpUser):
    """Dashboard user - reads aggregates and lists.

    Weight: 30% of traffic
    """

    weight = 3
    wait_time = between(2, 5)

    @task(5)
    def view_summary(self):
        self.client.get("/telemetry/summary", name="GET /telemetry/summary")

    @task(3)
    def view_hourly_trend(self):
        self.client.get("/telemetry/trends/total?window=24h", name="GET /telemetry/trends/total (24h)")

    @task(2)
    def view_daily_trend(self):
        self.client.get("/telemetry/trends/total?window=7d", name="GET /telemetry/trends/total (7d)")

    @task(2)
    def view_breakdown(self):
        by = random.choice(["location", "category"])
        self.client.get(f"/telemetry/breakdown?by={by}", name="GET /telemetry/breakdown")

    @task(2)
    def view_readings(self):
        """View paginated readings, sometimes filtered."""
        params = "page=1&limit=50"
        if random.random() < 0.3:
            params += f"&search={random.choice(LOCATIONS)}"
        self.client.get(f"/telemetry/readings?{params}", name="GET /telemetry/readings (paginated)")

    @task(1)
    def view_devices(self):
        sort = random.choice(["deviceId", "location", "lastReported", "status"])
        self.client.get(
            f"/telemetry/metadata/devices?page=1&limit=20&sort={sort}&order=asc",
            name="GET /telemetry/metadata/devices",
        )


# ==================== Event Handlers ====================

@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Print test configuration at start."""
    print("\n" + "="*80)
    print("Smart Home Telemetry Load Test Starting")
    print("="*80)
    print(f"Target host: {environment.host}")
    print("User classes: DeviceFleet (70%), DashboardViewer (30%)")
    print("="*80 + "\n")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print test summary at completion."""
    stats = environment.stats
    print("\n" + "="*80)
    print("Smart Home Telemetry Load Test Complete")
    print("="*80)
    print(f"Total requests: {stats.total.num_requests}")
    print(f"Total failures: {stats.total.num_failures}")
    print(f"Requests/sec: {stats.total.total_rps:.2f}")

    if stats.total.num_requests > 0:
        print(f"  95th percentile: {stats.total.get_response_time_percentile(0.95):.2f}ms")
        print(f"  99th percentile: {stats.total.get_response_time_percentile(0.99):.2f}ms")

    print("="*80 + "\n")
