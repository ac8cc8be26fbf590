"""Speaking order, turn deadlines and the end of the conversation."""

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import Literal

from .actor import ConversationTimeUp, TurnExpired
from .broadcaster import Broadcaster
from .exceptions import (
    ConversationAlreadyStartedError,
    ConversationEndedError,
    ConversationNotStartedError,
    MotionPendingError,
    NoParticipantsError,
    NotEnoughParticipantsError,
    NotYourTurnError,
)
from .models import SYSTEM_NAME, Message, Participant
from .registry import LeaveResult
from .room import Room
from .timers import CONVERSATION_SLOT, TURN_SLOT
from .types import MessageKind, MotionOutcome, TurnPhase

logger = logging.getLogger(__name__)


class TurnCoordinator:
    """Enforces speaking order and per-turn deadlines.

    ``NotStarted -> InProgress(speaker_index, deadline) -> Ended``. Explicit
    passes and deadline expiry both go through :meth:`advance`, so the speaker
    index after N advances is always ``N mod participant_count``.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        tick_interval: float = 1.0,
        start_requirement: Literal["full", "nonempty"] = "full",
        max_participants: int = 2,
    ):
        self.broadcaster = broadcaster
        self.tick_interval = tick_interval
        self.start_requirement = start_requirement
        self.max_participants = max_participants

    async def start(self, room: Room) -> Participant:
        turn = room.turn
        if turn.phase is TurnPhase.IN_PROGRESS:
            raise ConversationAlreadyStartedError(f"Conversation in room {room.id} already started")
        if turn.phase is TurnPhase.ENDED:
            raise ConversationEndedError(f"Conversation in room {room.id} has ended")
        if not room.participants:
            raise NoParticipantsError(f"Room {room.id} has no participants")
        if self.start_requirement == "full" and len(room.participants) < self.max_participants:
            raise NotEnoughParticipantsError(
                f"Room {room.id} needs {self.max_participants} participants to start"
            )

        turn.phase = TurnPhase.IN_PROGRESS
        turn.speaker_index = 0
        turn.advances = 0
        turn.suspended = False
        room.conversation_started = True

        self._arm_deadline(room)
        self._arm_conversation_end(room)

        speaker = room.participants[0]
        logger.info(f"Conversation started in room {room.id}; {speaker.username} speaks first")
        await self._publish_turn(room, "start")
        return speaker

    def assert_speaker(self, room: Room, username: str) -> None:
        phase = room.turn.phase
        if phase is TurnPhase.NOT_STARTED:
            raise ConversationNotStartedError(f"Conversation in room {room.id} has not started")
        if phase is TurnPhase.ENDED:
            raise ConversationEndedError(f"Conversation in room {room.id} has ended")

        speaker = room.current_speaker
        if speaker is None or speaker.username != username:
            raise NotYourTurnError(f"It is not {username}'s turn")

    async def advance(self, room: Room, reason: str = "advance") -> Participant:
        """Pass the floor to the next participant and re-arm the deadline."""
        turn = room.turn
        if turn.phase is TurnPhase.NOT_STARTED:
            raise ConversationNotStartedError(f"Conversation in room {room.id} has not started")
        if turn.phase is TurnPhase.ENDED:
            raise ConversationEndedError(f"Conversation in room {room.id} has ended")

        room.timers.cancel(TURN_SLOT)
        turn.speaker_index = (turn.speaker_index + 1) % len(room.participants)
        turn.advances += 1
        if not turn.suspended:
            self._arm_deadline(room)

        speaker = room.participants[turn.speaker_index]
        logger.debug(f"Room {room.id}: turn passed to {speaker.username} ({reason})")
        await self._publish_turn(room, reason)
        return speaker

    async def pass_turn(self, room: Room, username: str) -> Participant:
        """The current speaker yields the floor."""
        self.assert_speaker(room, username)
        if room.turn.suspended:
            raise MotionPendingError("The turn cannot pass while a motion is open")
        return await self.advance(room, "pass")

    async def handle_expiry(self, room: Room, version: int) -> Message | None:
        """Deadline fired: advance and log a timeout, unless the timer is stale."""
        turn = room.turn
        if version != turn.version or turn.phase is not TurnPhase.IN_PROGRESS or turn.suspended:
            logger.debug(f"Ignoring stale turn timer for room {room.id}")
            return None

        speaker = await self.advance(room, "timeout")
        message = room.log.record(
            SYSTEM_NAME,
            f"Time is up. {speaker.username} has the floor.",
            kind=MessageKind.SYSTEM_TIMEOUT,
        )
        await self.broadcaster.broadcast_to_room(room.id, "receive-message", message.to_payload())
        return message

    async def transfer_from(self, room: Room, username: str) -> Participant:
        """Give the floor to the participant after ``username``."""
        if room.turn.phase is TurnPhase.NOT_STARTED:
            raise ConversationNotStartedError(f"Conversation in room {room.id} has not started")
        if room.turn.phase is TurnPhase.ENDED:
            raise ConversationEndedError(f"Conversation in room {room.id} has ended")

        names = room.usernames
        index = names.index(username) if username in names else room.turn.speaker_index
        room.turn.speaker_index = (index + 1) % len(room.participants)
        room.timers.cancel(TURN_SLOT)
        if not room.turn.suspended:
            self._arm_deadline(room)
        speaker = room.participants[room.turn.speaker_index]
        await self._publish_turn(room, "transfer")
        return speaker

    def suspend(self, room: Room) -> None:
        """Freeze the turn deadline while a motion is open."""
        turn = room.turn
        turn.suspended = True
        turn.version += 1
        turn.deadline = None
        room.timers.cancel(TURN_SLOT)

    async def resume(self, room: Room) -> None:
        turn = room.turn
        if not turn.suspended:
            return
        turn.suspended = False
        if turn.phase is TurnPhase.IN_PROGRESS:
            self._arm_deadline(room)
            await self._publish_turn(room, "resume")

    async def after_departure(self, room: Room, result: LeaveResult) -> None:
        """Re-arm the deadline when the departing participant held the floor."""
        if result.room_deleted or room.turn.phase is not TurnPhase.IN_PROGRESS:
            return
        if result.held_turn:
            room.timers.cancel(TURN_SLOT)
            if not room.turn.suspended:
                self._arm_deadline(room)
            await self._publish_turn(room, "departure")

    async def end(self, room: Room) -> Message | None:
        """Close the conversation and publish the final standings."""
        turn = room.turn
        if turn.phase is TurnPhase.ENDED:
            return None

        turn.phase = TurnPhase.ENDED
        turn.deadline = None
        turn.suspended = False
        turn.version += 1
        room.timers.cancel_all()
        await self._close_open_motion(room)

        standings = self.standings(room)
        message = room.log.record(
            SYSTEM_NAME, self._summary_text(standings), kind=MessageKind.SYSTEM_NOTICE
        )
        logger.info(f"Conversation ended in room {room.id}: {standings['winner'] or 'tie'}")
        await self.broadcaster.broadcast_to_room(room.id, "receive-message", message.to_payload())
        await self.broadcaster.broadcast_to_room(room.id, "conversation-ended", standings)
        return message

    async def _close_open_motion(self, room: Room) -> None:
        """A motion still open at the end closes as invalid; the point stands."""
        record = room.open_motion()
        if record is None:
            return
        record.outcome = MotionOutcome.INVALID
        record.closed = True
        record.under_review = False
        logger.info(f"Room {room.id}: motion on verdict #{record.verdict_ref} closed by the end of the debate")
        await self.broadcaster.broadcast_to_room(room.id, "motion-state", record.to_payload())

    async def handle_time_up(self, room: Room) -> Message | None:
        if room.turn.phase is not TurnPhase.IN_PROGRESS:
            return None
        return await self.end(room)

    @staticmethod
    def standings(room: Room) -> dict:
        """Negative points per participant; fewest points wins."""
        points = {name: room.violations.get(name, 0) for name in room.usernames}
        winner = None
        if points:
            lowest = min(points.values())
            leaders = [name for name, value in points.items() if value == lowest]
            if len(leaders) == 1:
                winner = leaders[0]
        return {"roomId": room.id, "points": points, "winner": winner, "tie": winner is None}

    @staticmethod
    def _summary_text(standings: dict) -> str:
        lines = ["Final summary of negative points:"]
        for name, value in standings["points"].items():
            lines.append(f"- {name}: {value}")
        if standings["winner"]:
            lines.append(f"Winner: {standings['winner']}.")
        else:
            lines.append("The debate ends in a tie.")
        return "\n".join(lines)

    def _arm_deadline(self, room: Room) -> None:
        turn = room.turn
        turn.version += 1
        version = turn.version
        duration = room.policy.turn_duration_seconds
        turn.deadline = datetime.now() + timedelta(seconds=duration)
        room.timers.arm(TURN_SLOT, lambda: self._countdown(room, version, duration))

    def _arm_conversation_end(self, room: Room) -> None:
        total = room.policy.total_duration_seconds
        if total <= 0:
            return

        async def _wait_for_end() -> None:
            await asyncio.sleep(total)
            if room.mailbox is not None:
                room.mailbox.post(ConversationTimeUp())

        room.timers.arm(CONVERSATION_SLOT, _wait_for_end)

    async def _countdown(self, room: Room, version: int, duration: float) -> None:
        remaining = float(duration)
        while remaining > 0:
            if room.turn.version != version:
                return
            await self.broadcaster.broadcast_to_room(
                room.id, "turn-time-update", {"secondsLeft": math.ceil(remaining)}
            )
            step = min(self.tick_interval, remaining)
            await asyncio.sleep(step)
            remaining -= step

        if room.mailbox is not None:
            room.mailbox.post(TurnExpired(version=version))

    async def _publish_turn(self, room: Room, reason: str) -> None:
        speaker = room.current_speaker
        await self.broadcaster.broadcast_to_room(
            room.id,
            "turn-changed",
            {
                "currentSpeaker": speaker.username if speaker else None,
                "speakerIndex": room.turn.speaker_index,
                "reason": reason,
                "deadline": room.turn.deadline.isoformat() if room.turn.deadline else None,
                "turnDurationSeconds": room.policy.turn_duration_seconds,
            },
        )
