"""Live-update fan-out to WebSocket subscribers.

The server owns one ``ConnectionManager`` for its lifetime. Every accepted
socket gets an unbounded outbound queue drained by its own writer task, so
``broadcast`` only enqueues and never waits on a slow consumer. Delivery is
best-effort: no acknowledgment, no retry, no replay for late joiners.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import WebSocket
from starlette.websockets import WebSocketState

from smarthome.core.metrics import (
    decrement_websocket_connections,
    increment_websocket_connections,
    record_broadcast_delivered,
)
from smarthome.core.timeutils import isoformat_utc, utcnow

logger = structlog.get_logger()

READING_EVENT = "telemetry:reading"
STATUS_EVENT = "status"


@dataclass(eq=False)
class LiveConnection:
    """One subscriber socket and its pending outbound messages."""

    websocket: WebSocket
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    writer: asyncio.Task | None = None

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )


def encode_event(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, default=str)


class ConnectionManager:
    """Tracks open live-update sockets and pushes events to them."""

    def __init__(self) -> None:
        self._connections: set[LiveConnection] = set()

    @property
    def active_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> LiveConnection:
        """Accept the socket, start its writer, and queue the status greeting."""
        await websocket.accept()
        connection = LiveConnection(websocket=websocket)
        connection.writer = asyncio.create_task(self._write_loop(connection))
        self._connections.add(connection)
        increment_websocket_connections()

        connection.queue.put_nowait(
            encode_event(
                STATUS_EVENT,
                {"status": "connected", "timestamp": isoformat_utc(utcnow())},
            )
        )
        logger.info("Live-update client connected", active=self.active_count)
        return connection

    async def disconnect(self, connection: LiveConnection) -> None:
        """Forget the connection and stop its writer. Safe to call twice."""
        if not self._forget(connection):
            return

        writer = connection.writer
        if writer is not None and writer is not asyncio.current_task():
            try:
                await writer
            except asyncio.CancelledError:
                pass
        logger.info("Live-update client disconnected", active=self.active_count)

    def broadcast(self, event: str, data: Any) -> int:
        """Queue one event for every open connection.

        Connections that are connecting, closing or closed are skipped and
        pruned. Returns the number of connections the event was queued for.
        """
        message = encode_event(event, data)
        queued = 0

        for connection in list(self._connections):
            if not connection.is_open:
                self._forget(connection)
                logger.debug("Skipped closed live-update connection", active=self.active_count)
                continue
            connection.queue.put_nowait(message)
            queued += 1

        return queued

    def publish_readings(self, readings: list[dict[str, Any]]) -> int:
        """Broadcast each reading as its own event, in the given order."""
        return sum(self.broadcast(READING_EVENT, reading) for reading in readings)

    async def drain(self) -> None:
        """Wait until every queued message has been handed to its socket."""
        await asyncio.gather(
            *(connection.queue.join() for connection in list(self._connections))
        )

    async def close_all(self) -> None:
        """Close every socket; used on application shutdown."""
        for connection in list(self._connections):
            await self.disconnect(connection)
            if connection.websocket.application_state == WebSocketState.CONNECTED:
                try:
                    await connection.websocket.close()
                except RuntimeError as e:
                    logger.debug("Socket already closed", error=str(e))

    def _forget(self, connection: LiveConnection) -> bool:
        """Unregister, discard pending messages and cancel the writer."""
        if connection not in self._connections:
            return False
        self._connections.discard(connection)
        decrement_websocket_connections()
        self._drain_queue(connection)

        writer = connection.writer
        if writer is not None and writer is not asyncio.current_task() and not writer.done():
            writer.cancel()
        return True

    async def _write_loop(self, connection: LiveConnection) -> None:
        while True:
            message = await connection.queue.get()
            try:
                await connection.websocket.send_text(message)
                record_broadcast_delivered()
            except Exception as e:
                # Dead peer: give up on this socket only
                logger.warning("Live-update send failed", error=str(e))
                connection.queue.task_done()
                self._forget(connection)
                return
            connection.queue.task_done()

    @staticmethod
    def _drain_queue(connection: LiveConnection) -> None:
        while not connection.queue.empty():
            connection.queue.get_nowait()
            connection.queue.task_done()
