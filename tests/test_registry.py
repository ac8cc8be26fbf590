"""Tests for room membership and lifecycle."""

from types import SimpleNamespace

import pytest

from config.settings import RoomConfig
from debate_room.exceptions import RoomFullError, RoomNotFoundError, UsernameTakenError
from debate_room.models import DebatePolicy, PolicyEntry
from debate_room.registry import RoomRegistry
from debate_room.types import TurnPhase

pytestmark = pytest.mark.unit


def conn(name: str) -> SimpleNamespace:
    return SimpleNamespace(name=name)


def test_first_joiner_creates_room_and_sets_policy() -> None:
    registry = RoomRegistry(RoomConfig())
    policy = DebatePolicy(entries=[PolicyEntry(name="Insults", prompt="x")], topic="Taxes")

    first = registry.create_or_join("R1", conn("a"), "alice", policy=policy)
    second = registry.create_or_join(
        "R1", conn("b"), "bob", policy=DebatePolicy(topic="Something else")
    )

    assert first.is_creator is True
    assert second.is_creator is False
    assert second.room is first.room
    assert first.room.policy.topic == "Taxes"
    assert first.room.usernames == ["alice", "bob"]


def test_duplicate_username_is_rejected() -> None:
    registry = RoomRegistry(RoomConfig(max_participants=3))
    registry.create_or_join("R1", conn("a"), "alice")

    with pytest.raises(UsernameTakenError) as excinfo:
        registry.create_or_join("R1", conn("b"), "alice")

    assert excinfo.value.code == "UsernameTaken"
    assert registry.get("R1").usernames == ["alice"]


def test_room_full_at_cap() -> None:
    registry = RoomRegistry(RoomConfig(max_participants=2))
    registry.create_or_join("R1", conn("a"), "alice")
    registry.create_or_join("R1", conn("b"), "bob")

    with pytest.raises(RoomFullError):
        registry.create_or_join("R1", conn("c"), "carol")


def test_lowest_tolerance_wins() -> None:
    registry = RoomRegistry(RoomConfig(max_participants=3))
    registry.create_or_join("R1", conn("a"), "alice", tolerance_level=3)
    registry.create_or_join("R1", conn("b"), "bob", tolerance_level=5)
    registry.create_or_join("R1", conn("c"), "carol", tolerance_level=1)

    assert registry.get("R1").policy.tolerance_level == 1


def test_rooms_are_isolated() -> None:
    registry = RoomRegistry(RoomConfig())
    registry.create_or_join("R1", conn("a"), "alice")
    registry.create_or_join("R2", conn("b"), "alice")

    assert sorted(registry.list_rooms()) == ["R1", "R2"]
    assert registry.get("R1") is not registry.get("R2")


def test_last_leave_deletes_room() -> None:
    registry = RoomRegistry(RoomConfig())
    alice = conn("a")
    joined = registry.create_or_join("R1", alice, "alice")

    result = registry.leave("R1", alice)

    assert result.room_deleted is True
    assert joined.room.closed is True
    assert registry.find("R1") is None
    with pytest.raises(RoomNotFoundError):
        registry.get("R1")


def test_leave_unknown_connection() -> None:
    registry = RoomRegistry(RoomConfig())
    registry.create_or_join("R1", conn("a"), "alice")

    with pytest.raises(RoomNotFoundError):
        registry.leave("R1", conn("stranger"))


def test_departure_before_speaker_keeps_same_speaker() -> None:
    registry = RoomRegistry(RoomConfig(max_participants=3))
    alice, bob, carol = conn("a"), conn("b"), conn("c")
    for handle, name in ((alice, "alice"), (bob, "bob"), (carol, "carol")):
        registry.create_or_join("R1", handle, name)
    room = registry.get("R1")
    room.turn.phase = TurnPhase.IN_PROGRESS
    room.turn.speaker_index = 2

    result = registry.leave("R1", alice)

    assert result.held_turn is False
    assert room.current_speaker.username == "carol"


def test_departing_speaker_wraps_index() -> None:
    registry = RoomRegistry(RoomConfig(max_participants=3))
    alice, bob, carol = conn("a"), conn("b"), conn("c")
    for handle, name in ((alice, "alice"), (bob, "bob"), (carol, "carol")):
        registry.create_or_join("R1", handle, name)
    room = registry.get("R1")
    room.turn.phase = TurnPhase.IN_PROGRESS
    room.turn.speaker_index = 2

    result = registry.leave("R1", carol)

    assert result.held_turn is True
    assert room.turn.speaker_index == 0
    assert room.current_speaker.username == "alice"


def test_rejoin_after_deletion_gets_fresh_room() -> None:
    registry = RoomRegistry(RoomConfig())
    alice = conn("a")
    old = registry.create_or_join("R1", alice, "alice").room
    old.log.record("alice", "hello")
    registry.leave("R1", alice)

    new = registry.create_or_join("R1", conn("a2"), "alice").room

    assert new is not old
    assert len(new.log) == 0
