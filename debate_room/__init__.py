"""Turn-based debate rooms: membership, history, turns and timers.

The engine that ties these to moderation lives in :mod:`debate_room.core`.
"""

from .exceptions import RoomClosedError, RoomError, ValidationError
from .message_log import MessageLog
from .models import DebatePolicy, Message, MotionRecord, Participant, PolicyEntry, Verdict
from .registry import JoinResult, LeaveResult, RoomRegistry
from .room import Room
from .types import MessageKind, MotionOutcome, TurnPhase

__all__ = [
    "RoomError",
    "RoomClosedError",
    "ValidationError",
    "MessageLog",
    "DebatePolicy",
    "Message",
    "MotionRecord",
    "Participant",
    "PolicyEntry",
    "Verdict",
    "JoinResult",
    "LeaveResult",
    "RoomRegistry",
    "Room",
    "MessageKind",
    "MotionOutcome",
    "TurnPhase",
]
