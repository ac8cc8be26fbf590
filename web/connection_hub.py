"""WebSocket fan-out for room events."""

import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Tracks the WebSockets subscribed to each room and publishes events to them.

    Every frame has the shape ``{"event": ..., "payload": ...}``. Sends to one
    connection happen in call order; a connection whose send fails is dropped
    from every room it was subscribed to.
    """

    def __init__(self) -> None:
        self.connections: dict[str, list[WebSocket]] = {}

    async def join_room(self, connection: WebSocket, room_id: str) -> None:
        members = self.connections.setdefault(room_id, [])
        if connection not in members:
            members.append(connection)

    async def leave_room(self, connection: WebSocket, room_id: str) -> None:
        members = self.connections.get(room_id)
        if members and connection in members:
            members.remove(connection)
        if members is not None and not members:
            del self.connections[room_id]

    async def broadcast_to_room(self, room_id: str, event: str, payload: Any) -> None:
        """Broadcast an event to all connected clients of a room."""
        if room_id not in self.connections:
            return

        dead_connections = []
        for websocket in list(self.connections[room_id]):
            if not await self._send(websocket, event, payload):
                dead_connections.append(websocket)

        # Remove dead connections
        for conn in dead_connections:
            await self.leave_room(conn, room_id)

    async def send_to_connection(self, connection: WebSocket, event: str, payload: Any) -> None:
        await self._send(connection, event, payload)

    def room_count(self) -> int:
        return len(self.connections)

    async def _send(self, websocket: WebSocket, event: str, payload: Any) -> bool:
        try:
            await websocket.send_json({"event": event, "payload": payload})
            return True
        except Exception as e:
            logger.debug(f"WebSocket send failed for '{event}': {e}")
            return False
