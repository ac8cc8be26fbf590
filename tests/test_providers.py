"""Tests for the model providers behind the moderator."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from httpx import Request, Response
from openai import RateLimitError
from config.settings import ModelConfig, ModerationConfig, OpenAIConfig, SystemConfig
from debate_room.exceptions import EvaluatorUnavailableError
from models.manager import ModelManager
from models.providers import (
    OpenAIProvider,
    ProviderConfigurationError,
    ProviderFactory,
    ProviderRateLimitError,
)
from moderation.evaluator import MODERATOR_MODEL_ID, ModelTextEvaluator, SilentEvaluator

pytestmark = pytest.mark.unit


def completion(content: str) -> SimpleNamespace:
    """Lightweight stand-in for a chat completion response."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def rate_limit_error() -> RateLimitError:
    request = Request("POST", "https://api.openai.com/v1/chat/completions")
    response = Response(429, request=request, json={"error": {"message": "Too many requests"}})
    return RateLimitError("Too many requests", response=response, body=response.json())


class FakeCompletions:
    """Simplified AsyncOpenAI chat completions endpoint."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if not self._responses:
            raise AssertionError("No fake responses left")
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def fake_client(completions: FakeCompletions) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr("models.providers.openai_provider.asyncio.sleep", fake_sleep)
    return recorded


def system_config(**openai) -> SystemConfig:
    return SystemConfig(openai=OpenAIConfig(api_key="test-key", **openai))


def test_openai_provider_sends_messages() -> None:
    completions = FakeCompletions(completion('  {"shouldIntervene": false}  '))
    provider = OpenAIProvider(system_config(), client=fake_client(completions))
    model = ModelConfig(name="gpt-4o-mini", max_tokens=50, temperature=0.1)
    messages = [{"role": "system", "content": "policy"}, {"role": "user", "content": "context"}]

    text = asyncio.run(provider.generate_response(model, messages))

    assert text == '{"shouldIntervene": false}'
    request = completions.requests[0]
    assert request["model"] == "gpt-4o-mini"
    assert request["messages"] == messages
    assert request["max_tokens"] == 50
    assert request["temperature"] == 0.1


def test_openai_provider_retries_on_rate_limit(sleeps: list[float]) -> None:
    """Rate limit responses should trigger exponential backoff retries."""
    completions = FakeCompletions(rate_limit_error(), rate_limit_error(), completion("ok"))
    provider = OpenAIProvider(
        system_config(max_retries=3, retry_base_delay=0.25), client=fake_client(completions)
    )

    text = asyncio.run(provider.generate_response(ModelConfig(name="gpt-4o-mini"), []))

    assert text == "ok"
    assert sleeps == [0.25, 0.5]
    assert len(completions.requests) == 3


def test_openai_provider_gives_up_after_max_retries(sleeps: list[float]) -> None:
    completions = FakeCompletions(rate_limit_error(), rate_limit_error())
    provider = OpenAIProvider(
        system_config(max_retries=1, retry_base_delay=0.5), client=fake_client(completions)
    )

    with pytest.raises(ProviderRateLimitError) as excinfo:
        asyncio.run(provider.generate_response(ModelConfig(name="gpt-4o-mini"), []))

    assert excinfo.value.status_code == 429
    assert sleeps == [0.5]


def test_openai_provider_without_key_is_not_running(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    provider = OpenAIProvider(SystemConfig())

    assert asyncio.run(provider.is_running()) is False
    with pytest.raises(ProviderConfigurationError):
        asyncio.run(provider.generate_response(ModelConfig(name="gpt-4o-mini"), []))


def test_factory_rejects_unknown_provider() -> None:
    assert ProviderFactory.get_available_providers() == ["openai", "ollama", "openrouter"]
    with pytest.raises(ValueError, match="Unknown provider"):
        ProviderFactory.create_provider("anthropic", SystemConfig())


def test_manager_rejects_unregistered_model() -> None:
    manager = ModelManager(SystemConfig())

    with pytest.raises(ProviderConfigurationError):
        asyncio.run(manager.generate_response("missing", []))
    assert asyncio.run(manager.provider_status("missing")) is False


def test_model_evaluator_sends_policy_as_system_prompt() -> None:
    """The evaluator should register its model and route prompts through the manager."""
    completions = FakeCompletions(completion('{"shouldIntervene": true}'))
    system = system_config()
    manager = ModelManager(system)
    manager._providers["openai"] = OpenAIProvider(system, client=fake_client(completions))

    evaluator = ModelTextEvaluator(ModerationConfig(model="gpt-4o-mini", max_tokens=120), system, manager)
    text = asyncio.run(evaluator.evaluate("Flag insults.", "Message: hello"))

    assert manager.is_registered(MODERATOR_MODEL_ID)
    assert evaluator.name == "openai:gpt-4o-mini"
    assert text == '{"shouldIntervene": true}'
    assert completions.requests[0]["messages"] == [
        {"role": "system", "content": "Flag insults."},
        {"role": "user", "content": "Message: hello"},
    ]
    assert completions.requests[0]["max_tokens"] == 120
    assert asyncio.run(evaluator.is_available()) is True


def test_silent_evaluator_never_intervenes() -> None:
    text = asyncio.run(SilentEvaluator().evaluate("policy", "context"))
    assert '"shouldIntervene": false' in text


def test_model_evaluator_reports_unavailable_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    """Provider failures should surface as an unavailable evaluator."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    evaluator = ModelTextEvaluator(ModerationConfig(), SystemConfig())

    with pytest.raises(EvaluatorUnavailableError):
        asyncio.run(evaluator.evaluate("Flag insults.", "Message: hello"))
    assert asyncio.run(evaluator.is_available()) is False
