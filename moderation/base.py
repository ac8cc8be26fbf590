"""Text evaluator interface used by the moderator."""

from abc import ABC, abstractmethod


class TextEvaluator(ABC):
    """Black-box capability that answers a policy prompt about some context.

    Implementations are assumed slow and occasionally failing; callers never
    rely on success.
    """

    @abstractmethod
    async def evaluate(self, policy_prompt: str, context_prompt: str) -> str:
        """Return the raw evaluator text for ``context_prompt`` under ``policy_prompt``."""
        pass

    @property
    def name(self) -> str:
        return type(self).__name__
