import asyncio
import logging
import os
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI, RateLimitError

from .base_model_provider import BaseModelProvider
from .exceptions import ProviderConfigurationError, ProviderRateLimitError

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseModelProvider):
    """OpenAI chat completions provider with exponential backoff on 429s."""

    def __init__(self, system_config: "SystemConfig", client: Any = None):
        super().__init__(system_config)
        openai_config = system_config.openai
        self._max_retries = openai_config.max_retries
        self._retry_base_delay = openai_config.retry_base_delay

        if client is not None:
            self._client = client
            return

        api_key = openai_config.api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            logger.warning(
                "No OpenAI API key found. Set OPENAI_API_KEY or configure in system settings."
            )
            self._client = None
        else:
            # Retries are handled here so the backoff schedule stays predictable
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=openai_config.base_url,
                timeout=openai_config.timeout,
                max_retries=0,
            )

    @property
    def provider_name(self) -> str:
        return "openai"

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        """Generate a response using OpenAI."""
        if not self._client:
            raise ProviderConfigurationError("OpenAI client not initialized - check API key")

        params = self._generation_params(model_config, messages, **overrides)
        attempt = 0
        while True:
            try:
                response = await self._client.chat.completions.create(**params)
                break
            except RateLimitError as exc:
                if attempt >= self._max_retries:
                    raise ProviderRateLimitError(
                        provider="openai",
                        model=model_config.name,
                        status_code=429,
                        detail="OpenAI rate limited the request.",
                    ) from exc
                delay = self._retry_base_delay * (2**attempt)
                logger.warning(
                    f"OpenAI rate limited {model_config.name}; retrying in {delay:.2f}s "
                    f"(attempt {attempt + 1}/{self._max_retries})"
                )
                await asyncio.sleep(delay)
                attempt += 1
            except Exception as e:
                logger.error(f"OpenAI generation failed for {model_config.name}: {e}")
                raise

        content = response.choices[0].message.content if response.choices else None
        return self._completion_text(content, model_config)
