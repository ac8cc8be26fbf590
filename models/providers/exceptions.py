"""Provider-level exceptions."""


class ProviderError(Exception):
    """Base class for evaluator provider failures."""


class ProviderRateLimitError(ProviderError):
    """Raised when a provider keeps rejecting requests with HTTP 429."""

    def __init__(
        self,
        provider: str,
        model: str,
        status_code: int = 429,
        detail: str | None = None,
    ):
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.detail = detail or f"{provider} rate limited the request."
        super().__init__(f"{self.detail} (model={model}, status={status_code})")


class ProviderConfigurationError(ProviderError):
    """Raised when a provider cannot be used with the current configuration."""
