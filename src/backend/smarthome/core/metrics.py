"""Prometheus metrics instrumentation for the telemetry backend."""

from prometheus_client import Counter, Gauge
from prometheus_fastapi_instrumentator import Instrumentator, metrics

# WebSocket connections gauge
websocket_connections = Gauge(
    "smarthome_websocket_connections_active",
    "Number of active live-update WebSocket connections",
)

# Ingestion counters
readings_ingested_total = Counter(
    "smarthome_readings_ingested_total",
    "Total number of telemetry readings persisted",
)

ingest_rejected_total = Counter(
    "smarthome_ingest_rejected_total",
    "Total number of rejected ingestion requests",
    ["reason"],
)

# Broadcast counter
broadcast_messages_total = Counter(
    "smarthome_broadcast_messages_total",
    "Total number of live-update messages delivered to sockets",
)


def setup_metrics(app) -> Instrumentator:
    """Set up Prometheus metrics instrumentation for FastAPI app."""
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/health", "/health/ready", "/metrics"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.add(
        metrics.default(
            metric_namespace="",
            metric_subsystem="",
            latency_highr_buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )
    )

    instrumentator.add(
        metrics.request_size(
            metric_namespace="",
            metric_subsystem="",
            should_include_handler=True,
            should_include_method=True,
            should_include_status=True,
        )
    )

    instrumentator.instrument(app)

    return instrumentator


def expose_metrics(app, instrumentator: Instrumentator) -> None:
    """Expose the /metrics endpoint."""
    instrumentator.expose(app, include_in_schema=False, should_gzip=True)


# Helper functions for updating custom metrics


def increment_websocket_connections() -> None:
    """Increment active WebSocket connections count."""
    websocket_connections.inc()


def decrement_websocket_connections() -> None:
    """Decrement active WebSocket connections count."""
    websocket_connections.dec()


def record_readings_ingested(count: int) -> None:
    readings_ingested_total.inc(count)


def record_ingest_rejected(reason: str) -> None:
    ingest_rejected_total.labels(reason=reason).inc()


def record_broadcast_delivered(count: int = 1) -> None:
    broadcast_messages_total.inc(count)
