import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class BaseModelProvider(ABC):
    """A backend able to answer the moderator's chat prompts."""

    def __init__(self, system_config: "SystemConfig"):
        self.system_config = system_config
        self._client: AsyncOpenAI | None = None

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Name used in configuration, e.g. ``openai``."""
        pass

    @abstractmethod
    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Return the stripped text of a single chat completion."""
        pass

    def validate_model_config(self, model_config: "ModelConfig") -> bool:
        """A model config belongs to the provider it names."""
        return model_config.provider == self.provider_name

    async def is_running(self) -> bool:
        """Whether the provider can currently serve requests."""
        return self._client is not None

    def _generation_params(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> dict:
        return {
            "model": model_config.name,
            "messages": messages,
            "max_tokens": overrides.get("max_tokens", model_config.max_tokens),
            "temperature": overrides.get("temperature", model_config.temperature),
        }

    def _completion_text(self, content: Any, model_config: "ModelConfig") -> str:
        """Normalize completion content; evaluators treat empty text as malformed."""
        text = (content or "").strip()
        if not text:
            logger.warning(f"{self.provider_name} model {model_config.name} returned empty content")
        else:
            logger.debug(f"Generated {len(text)} chars from {self.provider_name} model {model_config.name}")
        return text
