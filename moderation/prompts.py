"""Prompt builders for message evaluation and motion adjudication."""

from debate_room.models import Message, Verdict
from debate_room.types import MessageKind


def format_transcript(messages: list[Message]) -> str:
    """Render recent history as plain lines for the evaluator."""
    if not messages:
        return "(no previous messages)"
    lines = []
    for message in messages:
        label = message.author
        if message.kind is not MessageKind.USER:
            label = f"{message.author} [{message.kind.value}]"
        lines.append(f"{label}: {message.body}")
    return "\n".join(lines)


def build_context_prompt(
    *,
    topic: str,
    tolerance_level: int,
    recent: list[Message],
    message: Message,
    violation_count: int,
) -> str:
    """Context for evaluating one user message against one policy prompt."""
    topic_line = topic or "(no topic given)"
    return f"""DEBATE TOPIC: {topic_line}
TOLERANCE LEVEL: {tolerance_level} (lower means stricter moderation)

RECENT CONVERSATION:
{format_transcript(recent)}

SPEAKER: {message.author}
NEGATIVE POINTS SO FAR FOR {message.author}: {violation_count}

MESSAGE TO EVALUATE:
"{message.body}"

Respond with JSON only, in this exact format:
{{
  "shouldIntervene": true or false,
  "response": "your moderator message if shouldIntervene is true",
  "reason": "short reason for the decision",
  "category": "short category label for the problem, e.g. factual"
}}

Only intervene when the message clearly breaks the rule above. If there is no violation, shouldIntervene must be false."""


def build_adjudication_prompt(
    *,
    topic: str,
    verdict: Verdict,
    offending: Message | None,
    clarification: str,
    attempt: int,
    max_attempts: int,
    recent: list[Message],
) -> str:
    """Context for deciding whether a clarification overturns a verdict."""
    original = offending.body if offending else "(original message no longer in history)"
    return f"""DEBATE TOPIC: {topic or '(no topic given)'}

RECENT CONVERSATION:
{format_transcript(recent)}

CONTESTED VERDICT ({verdict.policy_name}, category: {verdict.category}):
Moderator said: "{verdict.rendered_text}"
Reason: {verdict.reason_text or '(none given)'}

ORIGINAL MESSAGE BY {verdict.target}:
"{original}"

CLARIFICATION (attempt {attempt} of {max_attempts}):
"{clarification}"

Respond with JSON only, in this exact format:
{{
  "valid": true or false,
  "response": "your moderator message announcing the decision",
  "reason": "short reason for the decision"
}}"""
