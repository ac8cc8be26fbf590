import asyncio
import logging
import os
import time
from typing import TYPE_CHECKING, ClassVar

import httpx

from .base_model_provider import BaseModelProvider
from .exceptions import ProviderConfigurationError, ProviderRateLimitError

if TYPE_CHECKING:
    from config.settings import SystemConfig, ModelConfig

logger = logging.getLogger(__name__)


class OpenRouterProvider(BaseModelProvider):
    """Hosted moderator models through OpenRouter's chat completions API.

    Requests from every room share one throttle so bursts of moderation
    (several policy entries per message) stay under the account's rate limit.
    """

    MIN_REQUEST_INTERVAL: ClassVar[float] = 1.0
    _throttle_lock: ClassVar[asyncio.Lock] = asyncio.Lock()
    _next_request_at: ClassVar[float] = 0.0

    def __init__(self, system_config: "SystemConfig"):
        super().__init__(system_config)
        self._settings = system_config.openrouter
        self._api_key = self._settings.api_key or os.getenv("OPENROUTER_API_KEY")
        if not self._api_key:
            logger.warning("No OpenRouter API key; set OPENROUTER_API_KEY or system.openrouter.api_key")

    @property
    def provider_name(self) -> str:
        return "openrouter"

    async def is_running(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        # Optional attribution headers
        if self._settings.site_url:
            headers["HTTP-Referer"] = self._settings.site_url
        if self._settings.app_name:
            headers["X-Title"] = self._settings.app_name
        return headers

    async def _wait_for_slot(self) -> None:
        cls = OpenRouterProvider
        async with cls._throttle_lock:
            wait = cls._next_request_at - time.monotonic()
            if wait > 0:
                logger.debug(f"Throttling OpenRouter request for {wait:.2f}s")
                await asyncio.sleep(wait)
            cls._next_request_at = time.monotonic() + cls.MIN_REQUEST_INTERVAL

    async def generate_response(
        self, model_config: "ModelConfig", messages: list[dict[str, str]], **overrides
    ) -> str:
        if not self._api_key:
            raise ProviderConfigurationError("OpenRouter API key missing")

        payload = self._generation_params(model_config, messages, **overrides)
        # Verdicts must be plain JSON; hide reasoning traces
        payload["reasoning"] = {"exclude": True}

        await self._wait_for_slot()
        try:
            async with httpx.AsyncClient(timeout=self._settings.timeout) as client:
                response = await client.post(
                    f"{self._settings.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                raise ProviderRateLimitError(
                    provider=self.provider_name,
                    model=model_config.name,
                    detail="OpenRouter rate limited the request.",
                ) from exc
            logger.error(f"OpenRouter returned {exc.response.status_code} for {model_config.name}")
            raise
        except httpx.HTTPError as exc:
            logger.error(f"OpenRouter request failed for {model_config.name}: {exc}")
            raise

        choices = response.json().get("choices") or [{}]
        return self._completion_text(choices[0].get("message", {}).get("content"), model_config)
