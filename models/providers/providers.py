from typing import TYPE_CHECKING

from .base_model_provider import BaseModelProvider
from .ollama_provider import OllamaProvider
from .open_router_provider import OpenRouterProvider
from .openai_provider import OpenAIProvider

if TYPE_CHECKING:
    from config.settings import SystemConfig


class ProviderFactory:
    """Builds the provider named in ``ModerationConfig.provider``."""

    _providers: dict[str, type[BaseModelProvider]] = {
        "openai": OpenAIProvider,
        "ollama": OllamaProvider,
        "openrouter": OpenRouterProvider,
    }

    @classmethod
    def create_provider(
        cls, provider_name: str, system_config: "SystemConfig"
    ) -> BaseModelProvider:
        provider_class = cls._providers.get(provider_name)
        if provider_class is None:
            raise ValueError(
                f"Unknown provider: {provider_name}. Available: {cls.get_available_providers()}"
            )
        return provider_class(system_config)

    @classmethod
    def get_available_providers(cls) -> list[str]:
        return list(cls._providers)
