"""Tests for multi-policy message evaluation."""

import asyncio

import pytest

from conftest import FACT_CHECK, INSULTS, NO_INTERVENTION, FakeEvaluator, intervention
from debate_room.exceptions import EvaluatorUnavailableError
from debate_room.models import DebatePolicy, PolicyEntry
from debate_room.room import Room
from moderation.pipeline import ModerationPipeline

pytestmark = pytest.mark.unit


def room_with(*entries: PolicyEntry) -> Room:
    return Room(id="R1", policy=DebatePolicy(entries=list(entries), topic="Nuclear power"))


def test_verdicts_follow_declaration_order_and_escalate() -> None:
    def responder(policy: str, context: str) -> str:
        if policy == INSULTS.prompt:
            return intervention("No insults, please.")
        return intervention("That claim is false.", category="factual")

    async def scenario() -> None:
        evaluator = FakeEvaluator(responder)
        pipeline = ModerationPipeline(evaluator, timeout=1.0)
        room = room_with(INSULTS, FACT_CHECK)
        message = room.log.record("bob", "You idiot, the moon is cheese.")
        emitted = []

        async def emit(verdict) -> None:
            # What the room does with each verdict before the next entry runs
            emitted.append(verdict)
            room.violations[verdict.target] += 1

        verdicts = await pipeline.evaluate(room, message, emit)

        assert [v.policy_name for v in verdicts] == ["Insults", "Fact check"]
        assert emitted == verdicts
        assert all(v.target == "bob" and v.source_message_id == message.id for v in verdicts)
        # Second evaluation sees the point from the first
        assert "NEGATIVE POINTS SO FAR FOR bob: 0" in evaluator.calls[0][1]
        assert "NEGATIVE POINTS SO FAR FOR bob: 1" in evaluator.calls[1][1]

    asyncio.run(scenario())


def test_empty_prompts_are_not_evaluated() -> None:
    async def scenario() -> None:
        evaluator = FakeEvaluator()
        pipeline = ModerationPipeline(evaluator)
        room = room_with(PolicyEntry(name="Unused", prompt="  "), INSULTS)
        message = room.log.record("alice", "hello")

        assert await pipeline.evaluate(room, message) == []
        assert [call[0] for call in evaluator.calls] == [INSULTS.prompt]

    asyncio.run(scenario())


@pytest.mark.parametrize(
    "failure",
    [
        EvaluatorUnavailableError("connection refused"),
        RuntimeError("provider exploded"),
        "not json at all",
        "",
    ],
)
def test_evaluator_failures_fail_open(failure) -> None:
    async def scenario() -> None:
        pipeline = ModerationPipeline(FakeEvaluator(lambda p, c: failure))
        room = room_with(INSULTS)
        message = room.log.record("alice", "hello")

        assert await pipeline.evaluate(room, message) == []
        assert room.log.get(message.id) is message

    asyncio.run(scenario())


def test_slow_evaluator_times_out() -> None:
    async def scenario() -> None:
        evaluator = FakeEvaluator(lambda p, c: intervention("late"), delay=0.5)
        pipeline = ModerationPipeline(evaluator, timeout=0.05)
        room = room_with(INSULTS)
        message = room.log.record("alice", "hello")

        assert await pipeline.evaluate(room, message) == []

    asyncio.run(scenario())


def test_one_failing_entry_does_not_stop_the_next() -> None:
    def responder(policy: str, context: str):
        if policy == INSULTS.prompt:
            raise ConnectionError("flaky")
        return intervention("False claim.", category="factual")

    async def scenario() -> None:
        pipeline = ModerationPipeline(FakeEvaluator(responder))
        room = room_with(INSULTS, FACT_CHECK)
        message = room.log.record("alice", "The earth is flat.")

        verdicts = await pipeline.evaluate(room, message)

        assert [v.policy_name for v in verdicts] == ["Fact check"]

    asyncio.run(scenario())


def test_context_contains_recent_window_and_topic() -> None:
    async def scenario() -> None:
        evaluator = FakeEvaluator(lambda p, c: NO_INTERVENTION)
        pipeline = ModerationPipeline(evaluator, context_window=3)
        room = room_with(INSULTS)
        for i in range(6):
            room.log.record("alice" if i % 2 else "bob", f"point {i}")
        message = room.log.record("alice", "final point")

        await pipeline.evaluate(room, message)

        context = evaluator.calls[0][1]
        assert "Nuclear power" in context
        assert "point 5" in context and "point 3" in context
        assert "point 2" not in context
        assert "\"final point\"" in context

    asyncio.run(scenario())
