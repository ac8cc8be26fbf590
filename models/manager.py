"""Routes evaluator chat requests to their model providers."""

from __future__ import annotations

import logging
import time
from typing import TypeAlias

from config.settings import ModelConfig, SystemConfig

from .providers.base_model_provider import BaseModelProvider
from .providers.exceptions import ProviderConfigurationError
from .providers.providers import ProviderFactory

MessageDict: TypeAlias = dict[str, str]
MessageList: TypeAlias = list[MessageDict]

logger = logging.getLogger(__name__)


class ModelManager:
    """Registry of evaluator models keyed by id, with one cached provider per backend."""

    def __init__(self, system_config: SystemConfig):
        self._system_config = system_config
        self._model_configs: dict[str, ModelConfig] = {}
        self._providers: dict[str, BaseModelProvider] = {}

    def provider_for(self, provider_name: str) -> BaseModelProvider:
        provider = self._providers.get(provider_name)
        if provider is None:
            provider = ProviderFactory.create_provider(provider_name, self._system_config)
            self._providers[provider_name] = provider
        return provider

    def register_model(self, model_id: str, config: ModelConfig) -> None:
        provider = self.provider_for(config.provider)
        if not provider.validate_model_config(config):
            logger.error(f"Cannot register {model_id}: {config.provider} does not serve {config.name}")
            raise ProviderConfigurationError(f"Provider {config.provider} cannot serve {config.name}")

        self._model_configs[model_id] = config
        logger.info(f"Registered model {model_id}: {config.name} ({config.provider})")

    def is_registered(self, model_id: str) -> bool:
        return model_id in self._model_configs

    def model_config(self, model_id: str) -> ModelConfig:
        config = self._model_configs.get(model_id)
        if config is None:
            raise ProviderConfigurationError(f"Model {model_id} not registered")
        return config

    async def generate_response(
        self, model_id: str, messages: MessageList, **overrides: object
    ) -> str:
        config = self.model_config(model_id)
        provider = self.provider_for(config.provider)

        started = time.perf_counter()
        response = await provider.generate_response(config, messages, **overrides)
        logger.debug(f"{model_id} ({config.provider}) answered in {time.perf_counter() - started:.2f}s")
        return response

    async def provider_status(self, model_id: str) -> bool:
        """Whether the provider behind ``model_id`` is reachable."""
        if not self.is_registered(model_id):
            return False
        return await self.provider_for(self._model_configs[model_id].provider).is_running()
