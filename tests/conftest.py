"""Pytest configuration and shared fixtures.

Provides a scripted text evaluator, a broadcaster that records every event,
and small helpers for driving rooms inside ``asyncio.run``.
"""

import asyncio
import json
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest

from config.settings import AppConfig, ModerationConfig, MotionConfig, RoomConfig
from debate_room.core import RoomEngine
from debate_room.models import DebatePolicy, PolicyEntry
from moderation.base import TextEvaluator

NO_INTERVENTION = json.dumps({"shouldIntervene": False, "response": "", "reason": "fine"})


def intervention(response: str, category: str = "insult", reason: str = "rule broken") -> str:
    """Evaluator text for an intervening verdict."""
    return json.dumps(
        {"shouldIntervene": True, "response": response, "reason": reason, "category": category}
    )


def adjudication(valid: bool, response: str = "") -> str:
    return json.dumps({"valid": valid, "response": response, "reason": "checked"})


class FakeEvaluator(TextEvaluator):
    """Scripted evaluator.

    ``responder(policy_prompt, context_prompt)`` returns the raw text to hand
    back, or an exception instance to raise.
    """

    def __init__(
        self,
        responder: Callable[[str, str], Any] | None = None,
        delay: float = 0.0,
    ):
        self.responder = responder or (lambda policy, context: NO_INTERVENTION)
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def evaluate(self, policy_prompt: str, context_prompt: str) -> str:
        self.calls.append((policy_prompt, context_prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.responder(policy_prompt, context_prompt)
        if isinstance(result, BaseException):
            raise result
        return result


class RecordingBroadcaster:
    """Broadcaster that keeps every event for later assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []
        self.direct: list[tuple[Any, str, Any]] = []
        self.members: dict[str, list[Any]] = {}

    async def join_room(self, connection: Any, room_id: str) -> None:
        self.members.setdefault(room_id, []).append(connection)

    async def leave_room(self, connection: Any, room_id: str) -> None:
        if connection in self.members.get(room_id, []):
            self.members[room_id].remove(connection)

    async def broadcast_to_room(self, room_id: str, event: str, payload: Any) -> None:
        self.events.append((room_id, event, payload))

    async def send_to_connection(self, connection: Any, event: str, payload: Any) -> None:
        self.direct.append((connection, event, payload))

    def payloads(self, event: str) -> list[Any]:
        return [payload for _, name, payload in self.events if name == event]

    def names(self) -> list[str]:
        return [name for _, name, _ in self.events]


def connection(name: str) -> SimpleNamespace:
    """Opaque connection handle."""
    return SimpleNamespace(name=name)


async def settle(rounds: int = 5) -> None:
    """Let queued actor commands and background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0.01)


def make_policy(*entries: PolicyEntry, turn: float = 60, total: float = 1800, topic: str = "") -> DebatePolicy:
    return DebatePolicy(
        entries=list(entries),
        topic=topic,
        turn_duration_seconds=turn,
        total_duration_seconds=total,
    )


INSULTS = PolicyEntry(name="Insults", prompt="Flag insults.", category="insult")
FACT_CHECK = PolicyEntry(name="Fact check", prompt="Flag false claims.", category="factual")


# =============================================================================
# SHARED FIXTURES - Available to all test modules
# =============================================================================


@pytest.fixture
def app_config() -> AppConfig:
    """Configuration with short timers for tests."""
    return AppConfig(
        room=RoomConfig(tick_interval_seconds=0.05),
        moderation=ModerationConfig(timeout=0.5),
        motion=MotionConfig(window_seconds=0.5),
    )


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def evaluator() -> FakeEvaluator:
    return FakeEvaluator()


@pytest.fixture
def engine(app_config: AppConfig, evaluator: FakeEvaluator, broadcaster: RecordingBroadcaster) -> RoomEngine:
    return RoomEngine(app_config, evaluator=evaluator, broadcaster=broadcaster)


# =============================================================================
# PYTEST CONFIGURATION HOOKS
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
