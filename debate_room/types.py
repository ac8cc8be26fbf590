"""Shared types and enums for debate rooms."""

from enum import Enum
from typing import TypedDict


class MessageKind(Enum):
    """Kinds of entries in a room's message log."""

    USER = "user"
    MODERATOR_VERDICT = "moderator_verdict"
    SYSTEM_TIMEOUT = "system_timeout"
    MOTION_REQUEST = "motion_request"
    MOTION_OUTCOME = "motion_outcome"
    SYSTEM_NOTICE = "system_notice"


class TurnPhase(Enum):
    """Lifecycle of a room's turn state."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ENDED = "ended"


class MotionOutcome(Enum):
    """Outcome of a motion against a verdict."""

    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    NOT_APPLICABLE = "not_applicable"


class MessagePayload(TypedDict):
    """Wire shape of a message."""

    id: int
    username: str
    message: str
    timestamp: str
    kind: str
    isAIModerator: bool
    reason: str | None
    verdictRef: int | None
    replyTo: int | None


class ParticipantPayload(TypedDict):
    """Wire shape of a participant."""

    username: str
    joinedAt: str


class RoomStatePayload(TypedDict):
    """Wire shape of the room-state event."""

    roomId: str
    participants: list[ParticipantPayload]
    conversationStarted: bool
    phase: str
    currentSpeaker: str | None
    turnDurationSeconds: int
    totalDurationSeconds: int
    toleranceLevel: int
    topic: str
    policies: list[str]
    violations: dict[str, int]
    openMotion: int | None


class MotionStatePayload(TypedDict):
    """Wire shape of the motion-state event."""

    verdictRef: int
    requester: str
    outcome: str
    attemptsUsed: int
    attemptsLeft: int
    closed: bool
    underReview: bool
