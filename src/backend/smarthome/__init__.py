"""Smart-home telemetry backend."""
