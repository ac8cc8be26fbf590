"""Room lifecycle and participant membership."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from config.settings import RoomConfig
from .exceptions import RoomFullError, RoomNotFoundError, UsernameTakenError
from .message_log import MessageLog
from .models import DebatePolicy, Participant
from .room import Room
from .types import TurnPhase

if TYPE_CHECKING:
    from .actor import RoomActor

logger = logging.getLogger(__name__)


@dataclass
class JoinResult:
    room: Room
    participant: Participant
    is_creator: bool


@dataclass
class LeaveResult:
    room: Room
    participant: Participant
    departed_index: int
    held_turn: bool
    room_deleted: bool


class RoomRegistry:
    """Owns the room-id to room mapping; the only cross-room state in the engine."""

    def __init__(
        self,
        room_config: RoomConfig,
        default_policy: Callable[[], DebatePolicy] | None = None,
        actor_factory: Callable[[Room], RoomActor] | None = None,
    ):
        self._config = room_config
        self._default_policy = default_policy or DebatePolicy
        self._actor_factory = actor_factory
        self._rooms: dict[str, Room] = {}

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)

    def list_rooms(self) -> list[str]:
        return list(self._rooms)

    def find(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def get(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    def ensure(self, room_id: str) -> Room:
        """Return the live room for ``room_id``, creating an empty one if needed."""
        room = self._rooms.get(room_id)
        if room is not None and not room.closed:
            return room

        room = Room(id=room_id, log=MessageLog(self._config.history_limit))
        if self._actor_factory is not None:
            room.mailbox = self._actor_factory(room)
        self._rooms[room_id] = room
        logger.info(f"Created room {room_id}")
        return room

    def create_or_join(
        self,
        room_id: str,
        connection: Any,
        username: str,
        policy: DebatePolicy | None = None,
        tolerance_level: int | None = None,
    ) -> JoinResult:
        room = self.ensure(room_id)

        if room.find_participant(username) is not None:
            raise UsernameTakenError(f"Username '{username}' is already in room {room_id}")
        if len(room.participants) >= self._config.max_participants:
            raise RoomFullError(
                f"Room {room_id} already has {self._config.max_participants} participants"
            )

        is_creator = not room.participants
        if is_creator:
            room.policy = policy or self._default_policy()
            if tolerance_level is not None:
                room.policy.tolerance_level = tolerance_level
        elif tolerance_level is not None and tolerance_level < room.policy.tolerance_level:
            # Lowest requested tolerance wins
            room.policy.tolerance_level = tolerance_level

        participant = Participant(
            connection=connection, username=username, tolerance_level=tolerance_level
        )
        room.participants.append(participant)
        logger.info(
            f"{username} joined room {room_id} ({len(room.participants)}/{self._config.max_participants})"
        )
        return JoinResult(room=room, participant=participant, is_creator=is_creator)

    def leave(self, room_id: str, connection: Any) -> LeaveResult:
        room = self.get(room_id)
        index = room.index_of_connection(connection)
        if index is None:
            raise RoomNotFoundError(f"Connection is not a member of room {room_id}")

        participant = room.participants.pop(index)
        held_turn = False
        turn = room.turn
        if room.participants and turn.phase is TurnPhase.IN_PROGRESS:
            if index < turn.speaker_index:
                turn.speaker_index -= 1
            elif index == turn.speaker_index:
                held_turn = True
            turn.speaker_index %= len(room.participants)

        room_deleted = not room.participants
        if room_deleted:
            self.remove(room_id)

        logger.info(f"{participant.username} left room {room_id}")
        return LeaveResult(
            room=room,
            participant=participant,
            departed_index=index,
            held_turn=held_turn,
            room_deleted=room_deleted,
        )

    def remove(self, room_id: str) -> None:
        """Delete a room, cancelling its timers and background work first."""
        room = self._rooms.get(room_id)
        if room is None:
            return
        room.shutdown()
        del self._rooms[room_id]
        logger.info(f"Deleted room {room_id}")
