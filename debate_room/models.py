"""Data models for debate rooms."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from config.settings import PolicyEntryConfig
from .types import MessageKind, MessagePayload, MotionOutcome, MotionStatePayload, TurnPhase

MODERATOR_NAME = "Moderator"
SYSTEM_NAME = "System"


@dataclass
class Participant:
    """A member of a room."""

    connection: Any
    username: str
    joined_at: datetime = field(default_factory=datetime.now)
    tolerance_level: int | None = None


@dataclass
class PolicyEntry:
    """One named moderation prompt."""

    name: str
    prompt: str = ""
    category: str | None = None

    @property
    def is_active(self) -> bool:
        return bool(self.prompt.strip())

    @classmethod
    def from_config(cls, entry: PolicyEntryConfig) -> "PolicyEntry":
        return cls(name=entry.name, prompt=entry.prompt, category=entry.category)


@dataclass
class DebatePolicy:
    """Moderation prompts plus tolerance and duration settings for a room."""

    entries: list[PolicyEntry] = field(default_factory=list)
    topic: str = ""
    tolerance_level: int = 1
    turn_duration_seconds: float = 60
    total_duration_seconds: float = 1800
    motion_prompt: str = ""

    def active_entries(self) -> list[PolicyEntry]:
        """Entries with a prompt, in declaration order."""
        return [entry for entry in self.entries if entry.is_active]


@dataclass
class Message:
    """A single entry in a room's history."""

    id: int
    author: str
    body: str
    kind: MessageKind = MessageKind.USER
    created_at: datetime = field(default_factory=datetime.now)
    reason: str | None = None
    verdict_ref: int | None = None
    reply_to: int | None = None

    def to_payload(self) -> MessagePayload:
        return {
            "id": self.id,
            "username": self.author,
            "message": self.body,
            "timestamp": self.created_at.isoformat(),
            "kind": self.kind.value,
            "isAIModerator": self.kind is not MessageKind.USER,
            "reason": self.reason,
            "verdictRef": self.verdict_ref,
            "replyTo": self.reply_to,
        }


@dataclass
class Verdict:
    """Outcome of evaluating one message against one policy entry."""

    policy_name: str
    should_intervene: bool
    rendered_text: str
    reason_text: str
    category: str
    target: str = ""
    source_message_id: int | None = None
    produced_at: datetime = field(default_factory=datetime.now)
    ref: int | None = None
    retracted: bool = False


@dataclass
class MotionRecord:
    """An appeal filed against a single verdict."""

    verdict_ref: int
    requester: str
    outcome: MotionOutcome = MotionOutcome.PENDING
    clarifications: list[str] = field(default_factory=list)
    attempts_used: int = 0
    max_attempts: int = 2
    closed: bool = False
    under_review: bool = False
    window_version: int = 0

    @property
    def clarification_text(self) -> str | None:
        return self.clarifications[-1] if self.clarifications else None

    @property
    def attempts_left(self) -> int:
        return max(0, self.max_attempts - self.attempts_used)

    def to_payload(self) -> MotionStatePayload:
        return {
            "verdictRef": self.verdict_ref,
            "requester": self.requester,
            "outcome": self.outcome.value,
            "attemptsUsed": self.attempts_used,
            "attemptsLeft": self.attempts_left,
            "closed": self.closed,
            "underReview": self.under_review,
        }


@dataclass
class TurnState:
    """Speaking order state for a room."""

    phase: TurnPhase = TurnPhase.NOT_STARTED
    speaker_index: int = 0
    deadline: datetime | None = None
    version: int = 0
    suspended: bool = False
    advances: int = 0
