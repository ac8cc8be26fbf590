"""Parse raw evaluator output into structured verdicts."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from debate_room.exceptions import MalformedResponseError
from debate_room.models import PolicyEntry, Verdict

logger = logging.getLogger(__name__)

_INTERVENE_KEYS = ("shouldIntervene", "shouldRespond", "should_intervene", "should_respond")
_VALID_KEYS = ("valid", "isValid", "is_valid")


@dataclass
class Adjudication:
    """Evaluator decision on a motion clarification."""

    valid: bool
    response: str
    reason: str


def extract_json(raw: str) -> dict[str, Any]:
    """Pull a JSON object out of evaluator text (markdown fences or bare braces)."""
    if not raw or not raw.strip():
        raise MalformedResponseError("Empty evaluator response", raw)

    markdown_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", raw, re.DOTALL)
    if markdown_match:
        json_text = markdown_match.group(1)
    else:
        json_match = re.search(r"\{.*\}", raw, re.DOTALL)
        json_text = json_match.group() if json_match else raw.strip()

    try:
        data = json.loads(repair_json(json_text))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON from evaluator: {e}", raw) from e

    if not isinstance(data, dict):
        raise MalformedResponseError("Evaluator JSON is not an object", raw)
    return data


def repair_json(json_text: str) -> str:
    """Repair common JSON slips from small models."""
    repaired = json_text.strip()
    # Trailing commas before closing braces/brackets
    repaired = re.sub(r",(\s*[}\]])", r"\1", repaired)
    # Python-style literals used as values
    repaired = re.sub(r":\s*True\b", ": true", repaired)
    repaired = re.sub(r":\s*False\b", ": false", repaired)
    repaired = re.sub(r":\s*None\b", ": null", repaired)
    return repaired


def _coerce_bool(value: Any, raw: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "yes", "1"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "no", "0", ""}:
        return False
    if value is None:
        return False
    raise MalformedResponseError(f"Expected a boolean, got {value!r}", raw)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        logger.warning(f"Converting non-string evaluator field: {type(value)} -> {value}")
        return str(value)
    return value.strip()


def parse_verdict(raw: str, entry: PolicyEntry) -> Verdict:
    """Turn evaluator text into a verdict for ``entry``.

    Raises :class:`MalformedResponseError` when the text carries no usable
    decision; callers treat that as "no intervention".
    """
    data = extract_json(raw)

    key = next((k for k in _INTERVENE_KEYS if k in data), None)
    if key is None:
        raise MalformedResponseError("Evaluator response has no intervention flag", raw)
    should_intervene = _coerce_bool(data[key], raw)

    reason = _text(data.get("reason"))
    rendered = _text(data.get("response") or data.get("message"))
    if should_intervene and not rendered:
        rendered = f"{entry.name}: {reason}" if reason else f"Negative point: {entry.name}."

    category = _text(data.get("category")) or entry.category or entry.name
    return Verdict(
        policy_name=entry.name,
        should_intervene=should_intervene,
        rendered_text=rendered,
        reason_text=reason,
        category=category.lower(),
    )


def parse_adjudication(raw: str) -> Adjudication:
    """Turn evaluator text into a motion decision."""
    data = extract_json(raw)
    key = next((k for k in _VALID_KEYS if k in data), None)
    if key is None:
        raise MalformedResponseError("Adjudication response has no 'valid' flag", raw)
    return Adjudication(
        valid=_coerce_bool(data[key], raw),
        response=_text(data.get("response")),
        reason=_text(data.get("reason")),
    )
