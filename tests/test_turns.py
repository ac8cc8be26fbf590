"""Tests for turn order, deadlines and the end of a conversation."""

import asyncio
from types import SimpleNamespace

import pytest

from conftest import RecordingBroadcaster
from debate_room.exceptions import (
    ConversationAlreadyStartedError,
    ConversationEndedError,
    ConversationNotStartedError,
    MotionPendingError,
    NoParticipantsError,
    NotEnoughParticipantsError,
    NotYourTurnError,
)
from debate_room.models import DebatePolicy, Participant
from debate_room.room import Room
from debate_room.timers import CONVERSATION_SLOT, TURN_SLOT
from debate_room.turns import TurnCoordinator
from debate_room.types import MessageKind, TurnPhase

pytestmark = pytest.mark.unit


def make_room(*names: str) -> Room:
    room = Room(id="R1", policy=DebatePolicy(turn_duration_seconds=60, total_duration_seconds=1800))
    for name in names:
        room.participants.append(Participant(connection=SimpleNamespace(name=name), username=name))
    return room


def test_start_requires_full_room_by_default() -> None:
    async def scenario() -> None:
        turns = TurnCoordinator(RecordingBroadcaster())
        with pytest.raises(NotEnoughParticipantsError):
            await turns.start(make_room("alice"))
        with pytest.raises(NoParticipantsError):
            await turns.start(make_room())

    asyncio.run(scenario())


def test_start_nonempty_variant_and_double_start() -> None:
    async def scenario() -> None:
        broadcaster = RecordingBroadcaster()
        turns = TurnCoordinator(broadcaster, start_requirement="nonempty")
        room = make_room("alice")

        speaker = await turns.start(room)

        assert speaker.username == "alice"
        assert room.turn.phase is TurnPhase.IN_PROGRESS
        assert room.timers.is_armed(TURN_SLOT)
        assert room.timers.is_armed(CONVERSATION_SLOT)
        assert broadcaster.payloads("turn-changed")[0]["currentSpeaker"] == "alice"
        with pytest.raises(ConversationAlreadyStartedError):
            await turns.start(room)
        room.shutdown()

    asyncio.run(scenario())


def test_only_current_speaker_is_authorized() -> None:
    async def scenario() -> None:
        turns = TurnCoordinator(RecordingBroadcaster())
        room = make_room("alice", "bob")

        with pytest.raises(ConversationNotStartedError):
            turns.assert_speaker(room, "alice")

        await turns.start(room)
        turns.assert_speaker(room, "alice")
        with pytest.raises(NotYourTurnError):
            turns.assert_speaker(room, "bob")
        with pytest.raises(NotYourTurnError):
            turns.assert_speaker(room, "mallory")
        room.shutdown()

    asyncio.run(scenario())


@pytest.mark.parametrize("advances", [1, 2, 5, 8])
def test_speaker_index_is_advances_mod_participants(advances: int) -> None:
    async def scenario() -> None:
        turns = TurnCoordinator(RecordingBroadcaster(), max_participants=3)
        room = make_room("alice", "bob", "carol")
        await turns.start(room)

        for _ in range(advances):
            await turns.advance(room)

        assert room.turn.speaker_index == advances % 3
        assert room.turn.advances == advances
        room.shutdown()

    asyncio.run(scenario())


def test_rearming_supersedes_previous_deadline() -> None:
    async def scenario() -> None:
        turns = TurnCoordinator(RecordingBroadcaster())
        room = make_room("alice", "bob")
        await turns.start(room)
        first_version = room.turn.version

        await turns.advance(room)

        assert room.turn.version > first_version
        # The superseded deadline is a no-op
        assert await turns.handle_expiry(room, first_version) is None
        assert room.current_speaker.username == "bob"
        room.shutdown()

    asyncio.run(scenario())


def test_expiry_advances_and_logs_timeout() -> None:
    async def scenario() -> None:
        broadcaster = RecordingBroadcaster()
        turns = TurnCoordinator(broadcaster)
        room = make_room("alice", "bob")
        await turns.start(room)

        message = await turns.handle_expiry(room, room.turn.version)

        assert message.kind is MessageKind.SYSTEM_TIMEOUT
        assert "bob" in message.body
        assert room.current_speaker.username == "bob"
        assert broadcaster.payloads("turn-changed")[-1]["reason"] == "timeout"
        room.shutdown()

    asyncio.run(scenario())


def test_pass_turn_blocked_while_suspended() -> None:
    async def scenario() -> None:
        turns = TurnCoordinator(RecordingBroadcaster())
        room = make_room("alice", "bob")
        await turns.start(room)

        turns.suspend(room)
        assert not room.timers.is_armed(TURN_SLOT)
        with pytest.raises(MotionPendingError):
            await turns.pass_turn(room, "alice")

        await turns.resume(room)
        assert room.timers.is_armed(TURN_SLOT)
        speaker = await turns.pass_turn(room, "alice")
        assert speaker.username == "bob"
        room.shutdown()

    asyncio.run(scenario())


def test_end_is_terminal_and_publishes_standings() -> None:
    async def scenario() -> None:
        broadcaster = RecordingBroadcaster()
        turns = TurnCoordinator(broadcaster)
        room = make_room("alice", "bob")
        await turns.start(room)
        room.violations["alice"] = 2
        room.violations["bob"] = 1

        summary = await turns.end(room)

        assert room.turn.phase is TurnPhase.ENDED
        assert not room.timers.is_armed(TURN_SLOT)
        assert not room.timers.is_armed(CONVERSATION_SLOT)
        assert summary.kind is MessageKind.SYSTEM_NOTICE
        assert "Winner: bob" in summary.body
        standings = broadcaster.payloads("conversation-ended")[0]
        assert standings["points"] == {"alice": 2, "bob": 1}
        assert standings["winner"] == "bob"

        with pytest.raises(ConversationEndedError):
            turns.assert_speaker(room, "bob")
        with pytest.raises(ConversationEndedError):
            await turns.advance(room)
        assert await turns.end(room) is None

    asyncio.run(scenario())


def test_standings_tie() -> None:
    room = make_room("alice", "bob")
    room.violations["alice"] = 1
    room.violations["bob"] = 1

    standings = TurnCoordinator.standings(room)

    assert standings["winner"] is None
    assert standings["tie"] is True


def test_countdown_ticks_then_expires() -> None:
    async def scenario() -> None:
        broadcaster = RecordingBroadcaster()
        turns = TurnCoordinator(broadcaster, tick_interval=0.05)
        room = make_room("alice", "bob")
        room.policy.turn_duration_seconds = 0.2
        posted = []
        room.mailbox = SimpleNamespace(post=posted.append)

        await turns.start(room)
        await asyncio.sleep(0.35)

        ticks = broadcaster.payloads("turn-time-update")
        assert len(ticks) >= 3
        assert all(tick["secondsLeft"] == 1 for tick in ticks)
        assert [type(command).__name__ for command in posted] == ["TurnExpired"]
        assert posted[0].version == room.turn.version
        room.mailbox = None
        room.shutdown()

    asyncio.run(scenario())
