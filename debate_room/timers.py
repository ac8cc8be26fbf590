"""Cancellable timers scoped to a single room."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

TURN_SLOT = "turn"
CONVERSATION_SLOT = "conversation"
MOTION_SLOT = "motion"


class RoomTimers:
    """Named timer slots for one room; arming a slot cancels what it held."""

    def __init__(self, room_id: str):
        self.room_id = room_id
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def arm(self, slot: str, factory: Callable[[], Awaitable[None]]) -> asyncio.Task[None]:
        """Cancel the slot's current timer, then start ``factory()`` in its place."""
        self.cancel(slot)
        task = asyncio.create_task(self._guard(slot, factory))
        self._tasks[slot] = task
        return task

    def cancel(self, slot: str) -> bool:
        task = self._tasks.pop(slot, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"Cancelled {slot} timer for room {self.room_id}")
        return True

    def cancel_all(self) -> None:
        for slot in list(self._tasks):
            self.cancel(slot)

    def is_armed(self, slot: str) -> bool:
        task = self._tasks.get(slot)
        return task is not None and not task.done()

    async def _guard(self, slot: str, factory: Callable[[], Awaitable[None]]) -> None:
        try:
            await factory()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"{slot} timer for room {self.room_id} failed: {e}")
