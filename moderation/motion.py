"""Motion workflow: a sanctioned speaker contests one verdict.

A motion is filed against a single verdict by the participant it sanctioned.
The speaker then has a short window to send a clarification, which the
evaluator adjudicates:

* valid   -> the point is retracted and the floor passes on
* invalid -> the point stays, one more is added, and one further
             clarification is allowed; a second invalid closes the motion

While a motion is open the turn deadline is suspended. If the window expires
without a clarification the motion closes as invalid, with
``MotionConfig.expiry_penalty`` extra points.
"""

import asyncio
import logging

from config.settings import MotionConfig
from debate_room.actor import ApplyAdjudication, MotionWindowExpired
from debate_room.broadcaster import Broadcaster
from debate_room.exceptions import (
    AlreadyUsedError,
    ConversationEndedError,
    ConversationNotStartedError,
    MalformedResponseError,
    MotionPendingError,
    NotApplicableError,
    NotSanctionedError,
    RoomClosedError,
    VerdictNotFoundError,
)
from debate_room.models import MODERATOR_NAME, SYSTEM_NAME, MotionRecord, Verdict
from debate_room.room import Room
from debate_room.timers import MOTION_SLOT
from debate_room.turns import TurnCoordinator
from debate_room.types import MessageKind, MotionOutcome, TurnPhase
from .base import TextEvaluator
from .parsing import parse_adjudication
from .prompts import build_adjudication_prompt

logger = logging.getLogger(__name__)

RETRACTED_TEXT = "The negative point is withdrawn after the clarification. The floor passes to {speaker}."
INVALID_RETRY_TEXT = (
    "The motion does not correct the error. The negative point stands and one more is added. "
    "Do you want to clarify the motion again? (Warning: you may lose more points.)"
)
INVALID_FINAL_TEXT = (
    "The motion does not correct the error. The negative point stands and one more is added. "
    "The motion is closed."
)
EXPIRED_TEXT = "No clarification was received in time. The motion is closed and the point stands."


class MotionWorkflow:
    """Bounded appeal over single verdicts. All methods run inside the room actor."""

    def __init__(
        self,
        evaluator: TextEvaluator,
        config: MotionConfig,
        broadcaster: Broadcaster,
        turns: TurnCoordinator,
        timeout: float = 15.0,
        context_window: int = 10,
    ):
        self.evaluator = evaluator
        self.config = config
        self.broadcaster = broadcaster
        self.turns = turns
        self.timeout = timeout
        self.context_window = context_window

    async def request_motion(self, room: Room, verdict_ref: int, username: str) -> MotionRecord:
        self._require_in_progress(room)
        verdict = room.verdicts.get(verdict_ref)
        if verdict is None:
            raise VerdictNotFoundError(f"No verdict #{verdict_ref} in room {room.id}")
        if verdict.target != username:
            raise NotSanctionedError(f"Only {verdict.target} may contest verdict #{verdict_ref}")
        if not self.config.is_contestable(verdict.category):
            raise NotApplicableError(
                f"A motion does not apply to '{verdict.category}' verdicts. The debate continues."
            )
        if verdict_ref in room.motions or verdict.retracted:
            raise AlreadyUsedError(f"A motion was already filed against verdict #{verdict_ref}")
        if room.open_motion() is not None:
            raise MotionPendingError("Another motion is already open in this room")

        record = MotionRecord(
            verdict_ref=verdict_ref, requester=username, max_attempts=self.config.max_attempts
        )
        room.motions[verdict_ref] = record
        self.turns.suspend(room)
        self._arm_window(room, record)

        await self._announce(
            room,
            f"{username} requested a motion. The next clarification will be reviewed.",
            MessageKind.MOTION_REQUEST,
            author=SYSTEM_NAME,
            verdict_ref=verdict_ref,
        )
        await self._publish(room, record)
        logger.info(f"Room {room.id}: motion opened by {username} against verdict #{verdict_ref}")
        return record

    async def submit_clarification(
        self, room: Room, verdict_ref: int, username: str, clarification: str
    ) -> MotionRecord:
        self._require_in_progress(room)
        record = room.motions.get(verdict_ref)
        if record is None:
            raise NotApplicableError(f"No motion was requested for verdict #{verdict_ref}")
        if record.requester != username:
            raise NotSanctionedError(f"Only {record.requester} may clarify this motion")
        if record.closed or record.attempts_used >= record.max_attempts:
            raise AlreadyUsedError(f"The motion on verdict #{verdict_ref} is closed")
        if record.under_review:
            raise MotionPendingError("The previous clarification is still under review")

        record.attempts_used += 1
        record.clarifications.append(clarification)
        record.under_review = True
        record.outcome = MotionOutcome.PENDING
        room.timers.cancel(MOTION_SLOT)

        await self._announce(
            room,
            clarification,
            MessageKind.MOTION_REQUEST,
            author=username,
            verdict_ref=verdict_ref,
        )
        await self._publish(room, record)

        verdict = room.verdicts[verdict_ref]
        prompt = build_adjudication_prompt(
            topic=room.policy.topic,
            verdict=verdict,
            offending=room.log.get(verdict.source_message_id) if verdict.source_message_id else None,
            clarification=clarification,
            attempt=record.attempts_used,
            max_attempts=record.max_attempts,
            recent=room.log.recent(self.context_window),
        )
        room.spawn(self._adjudicate(room, verdict_ref, record.attempts_used, prompt))
        return record

    async def apply_adjudication(self, room: Room, result: ApplyAdjudication) -> MotionRecord | None:
        if room.turn.phase is TurnPhase.ENDED:
            logger.debug(f"Dropping adjudication for verdict #{result.verdict_ref}; room {room.id} has ended")
            return None
        record = room.motions.get(result.verdict_ref)
        if record is None or record.closed or record.attempts_used != result.attempt:
            logger.debug(f"Ignoring stale adjudication for verdict #{result.verdict_ref}")
            return None

        record.under_review = False
        verdict = room.verdicts[result.verdict_ref]

        if result.valid is None:
            # Evaluator unavailable; the attempt is not consumed
            record.attempts_used -= 1
            record.clarifications.pop()
            self._arm_window(room, record)
            await self._publish(room, record)
            return record

        if result.valid:
            await self._accept(room, record, verdict, result.response)
        else:
            await self._reject(room, record, verdict, result.response)
        await self._publish(room, record)
        return record

    async def expire(self, room: Room, verdict_ref: int, version: int) -> MotionRecord | None:
        record = room.motions.get(verdict_ref)
        if record is None or record.closed or record.under_review or record.window_version != version:
            logger.debug(f"Ignoring stale motion window for verdict #{verdict_ref}")
            return None

        record.outcome = MotionOutcome.INVALID
        record.closed = True
        if self.config.expiry_penalty:
            room.violations[record.requester] += self.config.expiry_penalty
        await self._announce(room, EXPIRED_TEXT, MessageKind.MOTION_OUTCOME, verdict_ref=verdict_ref)
        await self.turns.resume(room)
        await self._publish(room, record)
        logger.info(f"Room {room.id}: motion on verdict #{verdict_ref} expired")
        return record

    async def close_for(self, room: Room, username: str) -> None:
        """Close the open motion of a participant who left."""
        record = room.open_motion()
        if record is None or record.requester != username:
            return
        record.outcome = MotionOutcome.INVALID
        record.closed = True
        record.under_review = False
        room.timers.cancel(MOTION_SLOT)
        await self.turns.resume(room)
        await self._publish(room, record)

    async def _accept(self, room: Room, record: MotionRecord, verdict: Verdict, response: str) -> None:
        record.outcome = MotionOutcome.VALID
        record.closed = True
        verdict.retracted = True
        if room.violations[verdict.target] > 0:
            room.violations[verdict.target] -= 1

        await self.turns.resume(room)
        speaker = await self.turns.transfer_from(room, record.requester)
        text = response or RETRACTED_TEXT.format(speaker=speaker.username)
        await self._announce(room, text, MessageKind.MOTION_OUTCOME, verdict_ref=verdict.ref)
        logger.info(f"Room {room.id}: motion on verdict #{verdict.ref} accepted")

    async def _reject(self, room: Room, record: MotionRecord, verdict: Verdict, response: str) -> None:
        record.outcome = MotionOutcome.INVALID
        room.violations[verdict.target] += 1

        if record.attempts_used >= record.max_attempts:
            record.closed = True
            await self._announce(
                room, response or INVALID_FINAL_TEXT, MessageKind.MOTION_OUTCOME, verdict_ref=verdict.ref
            )
            await self.turns.resume(room)
            logger.info(f"Room {room.id}: motion on verdict #{verdict.ref} closed as invalid")
        else:
            self._arm_window(room, record)
            await self._announce(
                room, response or INVALID_RETRY_TEXT, MessageKind.MOTION_OUTCOME, verdict_ref=verdict.ref
            )

    async def _adjudicate(self, room: Room, verdict_ref: int, attempt: int, prompt: str) -> None:
        result = ApplyAdjudication(verdict_ref=verdict_ref, attempt=attempt, valid=None)
        try:
            raw = await asyncio.wait_for(
                self.evaluator.evaluate(room.policy.motion_prompt or self.config.adjudication_prompt, prompt),
                timeout=self.timeout,
            )
            decision = parse_adjudication(raw)
            result.valid = decision.valid
            result.response = decision.response
            result.reason = decision.reason
        except asyncio.TimeoutError:
            logger.warning(f"Adjudication timed out in room {room.id} after {self.timeout}s")
        except MalformedResponseError as e:
            logger.warning(f"Ignoring malformed adjudication in room {room.id}: {e}")
        except Exception as e:
            logger.error(f"Adjudication failed in room {room.id}: {type(e).__name__}: {e}")

        if room.mailbox is None:
            return
        try:
            await room.mailbox.submit(result)
        except RoomClosedError:
            logger.debug(f"Room {room.id} closed before adjudication of #{verdict_ref} landed")

    def _arm_window(self, room: Room, record: MotionRecord) -> None:
        record.window_version += 1
        version = record.window_version
        verdict_ref = record.verdict_ref
        window = self.config.window_seconds

        async def _wait_for_clarification() -> None:
            await asyncio.sleep(window)
            if room.mailbox is not None:
                room.mailbox.post(MotionWindowExpired(verdict_ref=verdict_ref, version=version))

        room.timers.arm(MOTION_SLOT, _wait_for_clarification)

    def _require_in_progress(self, room: Room) -> None:
        if room.turn.phase is TurnPhase.NOT_STARTED:
            raise ConversationNotStartedError(f"Conversation in room {room.id} has not started")
        if room.turn.phase is TurnPhase.ENDED:
            raise ConversationEndedError(f"Conversation in room {room.id} has ended")

    async def _announce(
        self,
        room: Room,
        text: str,
        kind: MessageKind,
        author: str = MODERATOR_NAME,
        verdict_ref: int | None = None,
    ) -> None:
        message = room.log.record(author, text, kind=kind, verdict_ref=verdict_ref)
        await self.broadcaster.broadcast_to_room(room.id, "receive-message", message.to_payload())

    async def _publish(self, room: Room, record: MotionRecord) -> None:
        await self.broadcaster.broadcast_to_room(room.id, "motion-state", record.to_payload())
