"""Per-room command actor.

Every mutation of a room goes through its actor: commands are queued and
handled one at a time, in arrival order, by a single task. Timers and
background evaluations never touch room state directly; they post commands.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import RoomClosedError, RoomError

if TYPE_CHECKING:
    from .models import Verdict
    from .room import Room

logger = logging.getLogger(__name__)


# Inbound commands


@dataclass
class JoinRoom:
    connection: Any
    username: str
    policy: Any = None
    tolerance_level: int | None = None


@dataclass
class LeaveRoom:
    connection: Any


@dataclass
class StartConversation:
    username: str


@dataclass
class SendMessage:
    username: str
    body: str


@dataclass
class EndTurn:
    username: str


@dataclass
class RequestMotion:
    username: str
    verdict_ref: int


@dataclass
class SubmitClarification:
    username: str
    verdict_ref: int
    clarification: str


@dataclass
class GetSnapshot:
    pass


# Internal commands posted by timers and background tasks


@dataclass
class TurnExpired:
    version: int


@dataclass
class ConversationTimeUp:
    pass


@dataclass
class MotionWindowExpired:
    verdict_ref: int
    version: int


@dataclass
class ReleaseIfEmpty:
    """Posted when a queued join is abandoned before it ran."""


@dataclass
class ApplyVerdict:
    verdict: Verdict


@dataclass
class ApplyAdjudication:
    verdict_ref: int
    attempt: int
    valid: bool | None
    response: str = ""
    reason: str = ""


CommandHandler = Callable[["Room", Any], Awaitable[Any]]


class RoomActor:
    """Serializes every operation on one room."""

    def __init__(self, room: Room, handler: CommandHandler):
        self.room = room
        self._handler = handler
        self._queue: asyncio.Queue[tuple[Any, asyncio.Future[Any] | None]] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_running(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"room-actor-{self.room.id}")

    async def submit(self, command: Any) -> Any:
        """Queue a command and wait for its result."""
        if self._closed:
            raise RoomClosedError(f"Room {self.room.id} is closed")
        self._ensure_running()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((command, future))
        return await future

    def post(self, command: Any) -> bool:
        """Queue a command without waiting; returns False if the room is gone."""
        if self._closed:
            logger.debug(f"Dropping {type(command).__name__} for closed room {self.room.id}")
            return False
        self._ensure_running()
        self._queue.put_nowait((command, None))
        return True

    def close(self) -> None:
        """Stop accepting commands once the current one finishes."""
        self._closed = True

    async def stop(self) -> None:
        self._closed = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._reject_pending()

    async def _run(self) -> None:
        while True:
            command, future = await self._queue.get()
            if future is not None and future.done():
                continue
            try:
                result = await self._handler(self.room, command)
            except RoomError as e:
                if future is not None and not future.done():
                    future.set_exception(e)
                else:
                    logger.debug(f"{type(command).__name__} rejected in room {self.room.id}: {e}")
            except Exception as e:
                logger.exception(
                    f"Unhandled error processing {type(command).__name__} in room {self.room.id}"
                )
                if future is not None and not future.done():
                    future.set_exception(e)
            else:
                if future is not None and not future.done():
                    future.set_result(result)

            if self._closed:
                self._reject_pending()
                return

    def _reject_pending(self) -> None:
        while not self._queue.empty():
            command, future = self._queue.get_nowait()
            if future is not None and not future.done():
                future.set_exception(RoomClosedError(f"Room {self.room.id} is closed"))
