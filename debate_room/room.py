"""Per-room state."""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .message_log import MessageLog
from .models import DebatePolicy, MotionRecord, Participant, TurnState, Verdict
from .timers import RoomTimers
from .types import ParticipantPayload, RoomStatePayload, TurnPhase

if TYPE_CHECKING:
    from .actor import RoomActor


@dataclass
class Room:
    """An isolated debate session. Mutated only by its actor."""

    id: str
    policy: DebatePolicy = field(default_factory=DebatePolicy)
    participants: list[Participant] = field(default_factory=list)
    turn: TurnState = field(default_factory=TurnState)
    conversation_started: bool = False
    log: MessageLog = field(default_factory=MessageLog)
    violations: Counter[str] = field(default_factory=Counter)
    verdicts: dict[int, Verdict] = field(default_factory=dict)
    motions: dict[int, MotionRecord] = field(default_factory=dict)
    timers: RoomTimers | None = None
    tasks: set[asyncio.Task[None]] = field(default_factory=set)
    mailbox: RoomActor | None = None
    closed: bool = False

    def __post_init__(self) -> None:
        if self.timers is None:
            self.timers = RoomTimers(self.id)

    @property
    def usernames(self) -> list[str]:
        return [p.username for p in self.participants]

    @property
    def current_speaker(self) -> Participant | None:
        if self.turn.phase is not TurnPhase.IN_PROGRESS or not self.participants:
            return None
        return self.participants[self.turn.speaker_index % len(self.participants)]

    def find_participant(self, username: str) -> Participant | None:
        for participant in self.participants:
            if participant.username == username:
                return participant
        return None

    def index_of_connection(self, connection: object) -> int | None:
        for index, participant in enumerate(self.participants):
            if participant.connection is connection:
                return index
        return None

    def open_motion(self) -> MotionRecord | None:
        for record in self.motions.values():
            if not record.closed:
                return record
        return None

    def spawn(self, coro) -> asyncio.Task[None]:
        """Run a background task owned by this room; cancelled when the room closes."""
        task = asyncio.create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    def shutdown(self) -> None:
        """Cancel every timer and background task owned by the room."""
        self.closed = True
        if self.timers is not None:
            self.timers.cancel_all()
        for task in list(self.tasks):
            if not task.done():
                task.cancel()
        if self.mailbox is not None:
            self.mailbox.close()

    def to_state(self) -> RoomStatePayload:
        speaker = self.current_speaker
        open_motion = self.open_motion()
        participants: list[ParticipantPayload] = [
            {"username": p.username, "joinedAt": p.joined_at.isoformat()}
            for p in self.participants
        ]
        return {
            "roomId": self.id,
            "participants": participants,
            "conversationStarted": self.conversation_started,
            "phase": self.turn.phase.value,
            "currentSpeaker": speaker.username if speaker else None,
            "turnDurationSeconds": self.policy.turn_duration_seconds,
            "totalDurationSeconds": self.policy.total_duration_seconds,
            "toleranceLevel": self.policy.tolerance_level,
            "topic": self.policy.topic,
            "policies": [entry.name for entry in self.policy.active_entries()],
            "violations": {name: self.violations.get(name, 0) for name in self.usernames},
            "openMotion": open_motion.verdict_ref if open_motion else None,
        }
