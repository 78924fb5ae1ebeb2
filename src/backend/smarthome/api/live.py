"""Live-update WebSocket endpoint.

Clients connect to ``/ws/telemetry`` and receive one
``{"event": "telemetry:reading", "data": {...}}`` message per stored
reading. Anything the client sends is ignored.
"""

import structlog
from fastapi import APIRouter, WebSocket, status

logger = structlog.get_logger()

router = APIRouter(tags=["Live Updates"])


@router.websocket("/ws/telemetry")
async def telemetry_stream(websocket: WebSocket):
    manager = getattr(websocket.app.state, "connection_manager", None)
    if manager is None:
        logger.warning("Live-update channel not initialised, rejecting socket")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    connection = await manager.connect(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        await manager.disconnect(connection)
