"""Room engine: wires registry, turns, moderation and motions behind per-room actors."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from config.settings import AppConfig
from moderation.base import TextEvaluator
from moderation.evaluator import SilentEvaluator
from moderation.motion import MotionWorkflow
from moderation.pipeline import ModerationPipeline
from .actor import (
    ApplyAdjudication,
    ApplyVerdict,
    ConversationTimeUp,
    EndTurn,
    GetSnapshot,
    JoinRoom,
    LeaveRoom,
    MotionWindowExpired,
    ReleaseIfEmpty,
    RequestMotion,
    RoomActor,
    SendMessage,
    StartConversation,
    SubmitClarification,
    TurnExpired,
)
from .broadcaster import Broadcaster, NullBroadcaster
from .exceptions import RoomClosedError, RoomNotFoundError
from .models import MODERATOR_NAME, DebatePolicy, Message, MotionRecord, Participant, PolicyEntry, Verdict
from .registry import JoinResult, LeaveResult, RoomRegistry
from .room import Room
from .turns import TurnCoordinator
from .types import MessageKind, MessagePayload, RoomStatePayload, TurnPhase

logger = logging.getLogger(__name__)

JOIN_ATTEMPTS = 3


class RoomEngine:
    """Entry point for every room operation.

    Public coroutines queue a command on the target room's actor and wait for
    the result, so callers never touch room state directly.
    """

    def __init__(
        self,
        config: AppConfig,
        evaluator: TextEvaluator | None = None,
        broadcaster: Broadcaster | None = None,
    ):
        self.config = config
        self.broadcaster = broadcaster or NullBroadcaster()
        self.evaluator = evaluator or SilentEvaluator()

        self.registry = RoomRegistry(
            config.room, default_policy=self.default_policy, actor_factory=self._make_actor
        )
        self.turns = TurnCoordinator(
            self.broadcaster,
            tick_interval=config.room.tick_interval_seconds,
            start_requirement=config.room.start_requirement,
            max_participants=config.room.max_participants,
        )
        self.moderation = ModerationPipeline(
            self.evaluator,
            timeout=config.moderation.timeout,
            context_window=config.moderation.context_window,
        )
        self.motions = MotionWorkflow(
            self.evaluator,
            config.motion,
            self.broadcaster,
            self.turns,
            timeout=config.moderation.timeout,
            context_window=config.moderation.context_window,
        )

        self._handlers: dict[type, Callable[[Room, Any], Awaitable[Any]]] = {
            JoinRoom: self._handle_join,
            LeaveRoom: self._handle_leave,
            StartConversation: self._handle_start,
            SendMessage: self._handle_send,
            EndTurn: self._handle_end_turn,
            RequestMotion: self._handle_request_motion,
            SubmitClarification: self._handle_clarification,
            GetSnapshot: self._handle_snapshot,
            TurnExpired: self._handle_turn_expired,
            ConversationTimeUp: self._handle_time_up,
            MotionWindowExpired: self._handle_motion_window,
            ApplyVerdict: self._handle_verdict,
            ApplyAdjudication: self._handle_adjudication,
            ReleaseIfEmpty: self._handle_release,
        }

    def default_policy(self) -> DebatePolicy:
        """Policy for rooms whose creator does not send one."""
        moderation = self.config.moderation
        entries = [PolicyEntry.from_config(entry) for entry in moderation.policies] if moderation.enabled else []
        return self.build_policy(entries)

    def build_policy(
        self,
        entries: list[PolicyEntry],
        topic: str = "",
        turn_duration_seconds: float | None = None,
        total_duration_seconds: float | None = None,
        motion_prompt: str | None = None,
    ) -> DebatePolicy:
        """Room policy; durations and the motion prompt fall back to the config."""
        room = self.config.room
        return DebatePolicy(
            entries=entries,
            topic=topic,
            tolerance_level=room.default_tolerance_level,
            turn_duration_seconds=turn_duration_seconds or room.turn_duration_seconds,
            total_duration_seconds=total_duration_seconds or room.total_duration_seconds,
            motion_prompt=motion_prompt or "",
        )

    def _make_actor(self, room: Room) -> RoomActor:
        return RoomActor(room, self._dispatch)

    async def _dispatch(self, room: Room, command: Any) -> Any:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"No handler for {type(command).__name__}")
        return await handler(room, command)

    async def _submit(self, room_id: str, command: Any) -> Any:
        room = self.registry.get(room_id)
        try:
            return await room.mailbox.submit(command)
        except RoomClosedError as e:
            raise RoomNotFoundError(f"Room {room_id} not found") from e

    # Public operations

    async def join(
        self,
        room_id: str,
        connection: Any,
        username: str,
        policy: DebatePolicy | None = None,
        tolerance_level: int | None = None,
    ) -> JoinResult:
        command = JoinRoom(
            connection=connection, username=username, policy=policy, tolerance_level=tolerance_level
        )
        for _ in range(JOIN_ATTEMPTS):
            room = self.registry.ensure(room_id)
            try:
                return await room.mailbox.submit(command)
            except asyncio.CancelledError:
                room.mailbox.post(ReleaseIfEmpty())
                raise
            except RoomClosedError:
                # Room was deleted while the join was queued; join a fresh one
                logger.debug(f"Room {room_id} closed during join; retrying")
        raise RoomNotFoundError(f"Room {room_id} could not be joined")

    async def leave(self, room_id: str, connection: Any) -> LeaveResult:
        return await self._submit(room_id, LeaveRoom(connection=connection))

    async def start(self, room_id: str, username: str) -> Participant:
        return await self._submit(room_id, StartConversation(username=username))

    async def send_message(self, room_id: str, username: str, body: str) -> Message:
        return await self._submit(room_id, SendMessage(username=username, body=body))

    async def end_turn(self, room_id: str, username: str) -> Participant:
        return await self._submit(room_id, EndTurn(username=username))

    async def request_motion(self, room_id: str, username: str, verdict_ref: int) -> MotionRecord:
        return await self._submit(room_id, RequestMotion(username=username, verdict_ref=verdict_ref))

    async def submit_clarification(
        self, room_id: str, username: str, verdict_ref: int, clarification: str
    ) -> MotionRecord:
        return await self._submit(
            room_id,
            SubmitClarification(username=username, verdict_ref=verdict_ref, clarification=clarification),
        )

    async def snapshot(self, room_id: str) -> RoomStatePayload:
        return await self._submit(room_id, GetSnapshot())

    def history(self, room_id: str) -> list[MessagePayload]:
        return [message.to_payload() for message in self.registry.get(room_id).log.history()]

    def list_rooms(self) -> list[RoomStatePayload]:
        return [self.registry.get(room_id).to_state() for room_id in self.registry.list_rooms()]

    async def shutdown(self) -> None:
        """Close every room, cancelling timers and background work."""
        for room_id in self.registry.list_rooms():
            room = self.registry.find(room_id)
            self.registry.remove(room_id)
            if room is not None and room.mailbox is not None:
                await room.mailbox.stop()
        logger.info("Room engine shut down")

    # Command handlers, run inside the room actor

    async def _handle_join(self, room: Room, command: JoinRoom) -> JoinResult:
        result = self.registry.create_or_join(
            room.id,
            command.connection,
            command.username,
            policy=command.policy,
            tolerance_level=command.tolerance_level,
        )
        await self.broadcaster.join_room(command.connection, room.id)
        await self.broadcaster.send_to_connection(
            command.connection, "message-history", [m.to_payload() for m in room.log.history()]
        )
        await self.broadcaster.send_to_connection(command.connection, "room-state", room.to_state())
        await self.broadcaster.broadcast_to_room(
            room.id,
            "user-joined",
            {"username": command.username, "participants": room.usernames, "isCreator": result.is_creator},
        )
        return result

    async def _handle_leave(self, room: Room, command: LeaveRoom) -> LeaveResult:
        index = room.index_of_connection(command.connection)
        if index is not None:
            await self.motions.close_for(room, room.participants[index].username)

        result = self.registry.leave(room.id, command.connection)
        await self.broadcaster.leave_room(command.connection, room.id)
        if result.room_deleted:
            return result

        await self.turns.after_departure(room, result)
        await self.broadcaster.broadcast_to_room(
            room.id,
            "user-left",
            {"username": result.participant.username, "participants": room.usernames},
        )
        return result

    async def _handle_start(self, room: Room, command: StartConversation) -> Participant:
        speaker = await self.turns.start(room)
        await self.broadcaster.broadcast_to_room(
            room.id,
            "conversation-started",
            {
                "roomId": room.id,
                "startedBy": command.username,
                "currentSpeaker": speaker.username,
                "turnDurationSeconds": room.policy.turn_duration_seconds,
                "totalDurationSeconds": room.policy.total_duration_seconds,
            },
        )
        await self.broadcaster.broadcast_to_room(room.id, "room-state", room.to_state())
        return speaker

    async def _handle_send(self, room: Room, command: SendMessage) -> Message:
        self.turns.assert_speaker(room, command.username)
        message = room.log.record(command.username, command.body)
        await self.broadcaster.broadcast_to_room(room.id, "receive-message", message.to_payload())

        if room.policy.active_entries():
            room.spawn(self._moderate(room, message))
        return message

    async def _moderate(self, room: Room, message: Message) -> None:
        async def emit(verdict: Verdict) -> None:
            await room.mailbox.submit(ApplyVerdict(verdict=verdict))

        try:
            await self.moderation.evaluate(room, message, emit)
        except RoomClosedError:
            logger.debug(f"Room {room.id} closed during moderation of message {message.id}")

    async def _handle_verdict(self, room: Room, command: ApplyVerdict) -> Verdict | None:
        verdict = command.verdict
        if room.turn.phase is TurnPhase.ENDED:
            logger.debug(f"Dropping '{verdict.policy_name}' verdict; room {room.id} has ended")
            return None

        message = room.log.record(
            MODERATOR_NAME,
            verdict.rendered_text,
            kind=MessageKind.MODERATOR_VERDICT,
            reason=verdict.reason_text or None,
            reply_to=verdict.source_message_id,
        )
        message.verdict_ref = message.id
        verdict.ref = message.id
        room.verdicts[message.id] = verdict
        room.violations[verdict.target] += 1

        await self.broadcaster.broadcast_to_room(room.id, "receive-message", message.to_payload())
        return verdict

    async def _handle_end_turn(self, room: Room, command: EndTurn) -> Participant:
        return await self.turns.pass_turn(room, command.username)

    async def _handle_request_motion(self, room: Room, command: RequestMotion) -> MotionRecord:
        return await self.motions.request_motion(room, command.verdict_ref, command.username)

    async def _handle_clarification(self, room: Room, command: SubmitClarification) -> MotionRecord:
        return await self.motions.submit_clarification(
            room, command.verdict_ref, command.username, command.clarification
        )

    async def _handle_snapshot(self, room: Room, command: GetSnapshot) -> RoomStatePayload:
        return room.to_state()

    async def _handle_turn_expired(self, room: Room, command: TurnExpired) -> Message | None:
        return await self.turns.handle_expiry(room, command.version)

    async def _handle_time_up(self, room: Room, command: ConversationTimeUp) -> Message | None:
        return await self.turns.handle_time_up(room)

    async def _handle_motion_window(self, room: Room, command: MotionWindowExpired) -> MotionRecord | None:
        return await self.motions.expire(room, command.verdict_ref, command.version)

    async def _handle_adjudication(self, room: Room, command: ApplyAdjudication) -> MotionRecord | None:
        return await self.motions.apply_adjudication(room, command)

    async def _handle_release(self, room: Room, command: ReleaseIfEmpty) -> None:
        if room.participants or self.registry.find(room.id) is not room:
            return
        logger.debug(f"Releasing room {room.id}; its only join was abandoned")
        self.registry.remove(room.id)
