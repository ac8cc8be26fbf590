"""Automated moderation: per-policy evaluation and the motion workflow."""

from .base import TextEvaluator
from .evaluator import ModelTextEvaluator, SilentEvaluator
from .motion import MotionWorkflow
from .parsing import Adjudication, parse_adjudication, parse_verdict
from .pipeline import ModerationPipeline

__all__ = [
    "TextEvaluator",
    "ModelTextEvaluator",
    "SilentEvaluator",
    "MotionWorkflow",
    "ModerationPipeline",
    "Adjudication",
    "parse_adjudication",
    "parse_verdict",
]
