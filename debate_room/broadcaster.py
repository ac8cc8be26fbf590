"""Transport interface consumed by the room engine."""

from typing import Any, Protocol


class Broadcaster(Protocol):
    """Room-scoped publish primitive; ordered per connection."""

    async def join_room(self, connection: Any, room_id: str) -> None:
        ...

    async def leave_room(self, connection: Any, room_id: str) -> None:
        ...

    async def broadcast_to_room(self, room_id: str, event: str, payload: Any) -> None:
        ...

    async def send_to_connection(self, connection: Any, event: str, payload: Any) -> None:
        ...


class NullBroadcaster:
    """Broadcaster that drops every event."""

    async def join_room(self, connection: Any, room_id: str) -> None:
        return None

    async def leave_room(self, connection: Any, room_id: str) -> None:
        return None

    async def broadcast_to_room(self, room_id: str, event: str, payload: Any) -> None:
        return None

    async def send_to_connection(self, connection: Any, event: str, payload: Any) -> None:
        return None
