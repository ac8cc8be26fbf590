"""Bounded per-room message history."""

from collections import deque
from collections.abc import Iterator
from itertools import count

from .models import Message
from .types import MessageKind

DEFAULT_HISTORY_LIMIT = 100


class MessageLog:
    """Ordered history of a single room, capped with FIFO eviction."""

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        self.limit = limit
        self._messages: deque[Message] = deque(maxlen=limit)
        self._ids = count(1)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def next_id(self) -> int:
        """Next message id; strictly increasing within the room."""
        return next(self._ids)

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def record(
        self,
        author: str,
        body: str,
        kind: MessageKind = MessageKind.USER,
        **extra,
    ) -> Message:
        """Create a message with a fresh id and append it."""
        return self.append(Message(id=self.next_id(), author=author, body=body, kind=kind, **extra))

    def history(self) -> list[Message]:
        return list(self._messages)

    def recent(self, limit: int, before_id: int | None = None) -> list[Message]:
        """Last ``limit`` messages, optionally only those older than ``before_id``."""
        if limit <= 0:
            return []
        messages = self._messages
        if before_id is not None:
            messages = [m for m in messages if m.id < before_id]
        return list(messages)[-limit:]

    def get(self, message_id: int) -> Message | None:
        for message in reversed(self._messages):
            if message.id == message_id:
                return message
        return None
