"""Text evaluator backed by the model provider layer."""

import logging

from config.settings import ModelConfig, ModerationConfig, SystemConfig
from debate_room.exceptions import EvaluatorUnavailableError
from models.manager import ModelManager
from models.providers.exceptions import ProviderError
from .base import TextEvaluator

logger = logging.getLogger(__name__)

MODERATOR_MODEL_ID = "moderator"


class ModelTextEvaluator(TextEvaluator):
    """Sends policy and context prompts to a chat model as system/user messages."""

    def __init__(self, moderation_config: ModerationConfig, system_config: SystemConfig, manager: ModelManager | None = None):
        self.config = moderation_config
        self.manager = manager or ModelManager(system_config)
        self.manager.register_model(
            MODERATOR_MODEL_ID,
            ModelConfig(
                name=moderation_config.model,
                provider=moderation_config.provider,
                max_tokens=moderation_config.max_tokens,
                temperature=moderation_config.temperature,
            ),
        )

    @property
    def name(self) -> str:
        return f"{self.config.provider}:{self.config.model}"

    async def evaluate(self, policy_prompt: str, context_prompt: str) -> str:
        messages = [
            {"role": "system", "content": policy_prompt},
            {"role": "user", "content": context_prompt},
        ]
        try:
            response = await self.manager.generate_response(MODERATOR_MODEL_ID, messages)
        except ProviderError as e:
            raise EvaluatorUnavailableError(f"{self.name} unavailable: {e}") from e
        logger.debug(f"{self.name} evaluation: {response[:200]}")
        return response

    async def is_available(self) -> bool:
        return await self.manager.provider_status(MODERATOR_MODEL_ID)


class SilentEvaluator(TextEvaluator):
    """Never intervenes; used when moderation is disabled."""

    async def evaluate(self, policy_prompt: str, context_prompt: str) -> str:
        return '{"shouldIntervene": false, "valid": false}'
