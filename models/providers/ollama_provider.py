import logging
from typing import TYPE_CHECKING

import httpx
from openai import AsyncOpenAI

from .base_model_provider import BaseModelProvider
from .exceptions import ProviderConfigurationError

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)

# Ollama ignores the key, but the SDK requires one
OLLAMA_API_KEY = "ollama"
# First request may block while the model loads into memory
LOAD_TIMEOUT = 120.0
HEALTH_TIMEOUT = 1.0


class OllamaProvider(BaseModelProvider):
    """Locally hosted moderator models via Ollama's OpenAI-compatible endpoint."""

    def __init__(self, system_config: "SystemConfig"):
        super().__init__(system_config)
        self._base_url = system_config.ollama_base_url.rstrip("/")
        self._client = AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key=OLLAMA_API_KEY,
            timeout=LOAD_TIMEOUT,
        )

    @property
    def provider_name(self) -> str:
        return "ollama"

    async def local_models(self) -> list[str]:
        """Names of the models pulled on the Ollama server."""
        async with httpx.AsyncClient(timeout=HEALTH_TIMEOUT) as client:
            response = await client.get(f"{self._base_url}/api/tags")
            response.raise_for_status()
        return [model.get("name", "") for model in response.json().get("models", [])]

    async def is_running(self) -> bool:
        try:
            await self.local_models()
        except httpx.HTTPError as e:
            logger.debug(f"Ollama health check failed: {e}")
            return False
        return True

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        if self._client is None:
            raise ProviderConfigurationError("Ollama client not initialized")

        params = self._generation_params(model_config, messages, **overrides)
        try:
            response = await self._client.chat.completions.create(**params)
        except Exception as e:
            logger.error(f"Ollama generation failed for {model_config.name}: {e}")
            raise
        return self._completion_text(response.choices[0].message.content, model_config)
