"""Multi-policy moderation of user messages."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from debate_room.exceptions import EvaluatorTimeoutError, MalformedResponseError
from debate_room.models import Message, PolicyEntry, Verdict
from debate_room.room import Room
from .base import TextEvaluator
from .parsing import parse_verdict
from .prompts import build_context_prompt

logger = logging.getLogger(__name__)

VerdictSink = Callable[[Verdict], Awaitable[object]]


class ModerationPipeline:
    """Runs a message past every active policy entry, in declaration order.

    Each intervening verdict is handed to ``emit`` before the next entry is
    evaluated, so the speaker's updated violation count is part of the
    context for later entries. Evaluator failures of any kind count as "no
    intervention" and never reach the caller.
    """

    def __init__(self, evaluator: TextEvaluator, timeout: float = 15.0, context_window: int = 10):
        self.evaluator = evaluator
        self.timeout = timeout
        self.context_window = context_window

    async def evaluate(
        self, room: Room, message: Message, emit: VerdictSink | None = None
    ) -> list[Verdict]:
        interventions: list[Verdict] = []
        for entry in room.policy.active_entries():
            verdict = await self._evaluate_entry(room, entry, message)
            if verdict is None or not verdict.should_intervene:
                continue

            verdict.target = message.author
            verdict.source_message_id = message.id
            interventions.append(verdict)
            logger.info(
                f"Room {room.id}: '{entry.name}' flagged message {message.id} by {message.author}"
            )
            if emit is not None:
                await emit(verdict)
        return interventions

    async def _evaluate_entry(
        self, room: Room, entry: PolicyEntry, message: Message
    ) -> Verdict | None:
        context_prompt = build_context_prompt(
            topic=room.policy.topic,
            tolerance_level=room.policy.tolerance_level,
            recent=room.log.recent(self.context_window, before_id=message.id),
            message=message,
            violation_count=room.violations.get(message.author, 0),
        )

        try:
            raw = await self._call_evaluator(entry.prompt, context_prompt)
            return parse_verdict(raw, entry)
        except MalformedResponseError as e:
            logger.warning(f"Ignoring malformed '{entry.name}' evaluation in room {room.id}: {e}")
            logger.debug(f"Raw evaluation: {e.raw_response}")
        except EvaluatorTimeoutError as e:
            logger.warning(f"'{entry.name}' evaluation timed out in room {room.id}: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"'{entry.name}' evaluation failed in room {room.id}: {type(e).__name__}: {e}")
        return None

    async def _call_evaluator(self, policy_prompt: str, context_prompt: str) -> str:
        try:
            return await asyncio.wait_for(
                self.evaluator.evaluate(policy_prompt, context_prompt), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise EvaluatorTimeoutError(
                f"{self.evaluator.name} did not answer within {self.timeout}s"
            ) from e
