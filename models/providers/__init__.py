"""Model providers package."""

from .providers import ProviderFactory
from .ollama_provider import OllamaProvider
from .open_router_provider import OpenRouterProvider
from .openai_provider import OpenAIProvider
from .base_model_provider import BaseModelProvider
from .exceptions import ProviderConfigurationError, ProviderError, ProviderRateLimitError

__all__ = [
    "ProviderFactory",
    "OllamaProvider",
    "OpenRouterProvider",
    "OpenAIProvider",
    "BaseModelProvider",
    "ProviderError",
    "ProviderConfigurationError",
    "ProviderRateLimitError",
]
