"""Configuration settings and data models."""

import json
import shutil
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator


class PolicyEntryConfig(BaseModel):
    """A single named moderation prompt."""

    name: str = Field(..., description="Policy name shown on moderator messages")
    prompt: str = Field(default="", description="Prompt text; empty means not evaluated")
    category: str | None = Field(
        default=None, description="Verdict category when the evaluator does not report one"
    )


class RoomConfig(BaseModel):
    """Room membership and timing defaults."""

    max_participants: int = Field(default=2, description="Membership cap per room")
    start_requirement: Literal["full", "nonempty"] = Field(
        default="full",
        description="'full' requires max_participants members, 'nonempty' at least one",
    )
    turn_duration_seconds: int = Field(default=60, description="Seconds per turn")
    total_duration_seconds: int = Field(
        default=1800, description="Seconds before the conversation ends"
    )
    tick_interval_seconds: float = Field(
        default=1.0, description="Interval between turn-time-update events"
    )
    history_limit: int = Field(default=100, description="Messages kept per room")
    default_tolerance_level: int = Field(
        default=1, description="Tolerance level when a participant does not send one"
    )

    @field_validator("max_participants")
    @classmethod
    def validate_max_participants(cls, v):
        if v < 1:
            raise ValueError("max_participants must be at least 1")
        return v

    @field_validator("history_limit")
    @classmethod
    def validate_history_limit(cls, v):
        if v < 1:
            raise ValueError("history_limit must be at least 1")
        return v


class ModerationConfig(BaseModel):
    """Automated moderator configuration."""

    enabled: bool = Field(default=True, description="Evaluate user messages")
    provider: str = Field(default="openai", description="Provider for the evaluator model")
    model: str = Field(default="gpt-4o-mini", description="Evaluator model name")
    timeout: float = Field(default=15.0, description="Seconds before an evaluator call is abandoned")
    temperature: float = Field(default=0.3, description="Evaluator temperature")
    max_tokens: int = Field(default=200, description="Maximum tokens per evaluation")
    context_window: int = Field(
        default=10, description="Recent messages sent to the evaluator as context"
    )
    policies: list[PolicyEntryConfig] = Field(
        default_factory=lambda: default_policies(),
        description="Default policy entries for rooms created without one",
    )

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v):
        valid_providers = {"openai", "openrouter", "ollama"}
        if v not in valid_providers:
            raise ValueError(f"Provider must be one of: {valid_providers}")
        return v


class MotionConfig(BaseModel):
    """Motion (verdict appeal) configuration."""

    contestable_categories: list[str] = Field(
        default=["factual"],
        description="Verdict categories open to a motion; '*' allows every category",
    )
    window_seconds: float = Field(
        default=60, description="Seconds the sanctioned speaker has to clarify"
    )
    max_attempts: int = Field(default=2, description="Clarifications accepted per verdict")
    expiry_penalty: int = Field(
        default=0, description="Extra points when the window expires without clarification"
    )
    adjudication_prompt: str = Field(
        default=(
            "You are the moderator of a structured debate. A participant received a "
            "negative point and is contesting it with a clarification. Decide whether "
            "the clarification corrects the problem that caused the point."
        ),
        description="System prompt used when adjudicating a clarification",
    )

    def is_contestable(self, category: str) -> bool:
        """Whether verdicts of this category may be contested."""
        allowed = {c.lower() for c in self.contestable_categories}
        return "*" in allowed or category.lower() in allowed


class ModelConfig(BaseModel):
    """Configuration for an evaluator model."""

    name: str = Field(..., description="Model name (e.g., 'gpt-4o-mini', 'llama3.2:3b')")
    provider: str = Field(default="openai", description="Model provider")
    max_tokens: int = Field(default=200, description="Maximum tokens per response")
    temperature: float = Field(default=0.3, description="Model temperature")


class OpenAIConfig(BaseModel):
    """OpenAI-specific configuration."""

    api_key: str | None = Field(
        default=None, description="OpenAI API key (can also be set via OPENAI_API_KEY env var)"
    )
    base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API base URL")
    max_retries: int = Field(default=3, description="Maximum number of API call retries")
    retry_base_delay: float = Field(default=0.5, description="First backoff delay in seconds")
    timeout: int = Field(default=30, description="API request timeout in seconds")


class OpenRouterConfig(BaseModel):
    """OpenRouter-specific configuration."""

    api_key: str | None = Field(
        default=None,
        description="OpenRouter API key (can also be set via OPENROUTER_API_KEY env var)",
    )
    base_url: str = Field(default="https://openrouter.ai/api/v1", description="OpenRouter API base URL")
    site_url: str | None = Field(default=None, description="Site URL for referrer tracking")
    app_name: str | None = Field(default="Debate Rooms", description="App name for tracking")
    max_retries: int = Field(default=3, description="Maximum number of API call retries")
    timeout: int = Field(default=60, description="API request timeout in seconds")


class SystemConfig(BaseModel):
    """System-wide configuration."""

    ollama_base_url: str = Field(default="http://localhost:11434", description="Ollama API URL")
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig, description="OpenAI settings")
    openrouter: OpenRouterConfig = Field(
        default_factory=OpenRouterConfig, description="OpenRouter settings"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


class AppConfig(BaseModel):
    """Complete application configuration."""

    room: RoomConfig = Field(default_factory=RoomConfig)
    moderation: ModerationConfig = Field(default_factory=ModerationConfig)
    motion: MotionConfig = Field(default_factory=MotionConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        unknown_sections = set(data) - {"room", "moderation", "motion", "system"}
        if unknown_sections:
            raise ValueError(f"Unknown config sections: {sorted(unknown_sections)}")

        return cls(**data)

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(exclude_unset=True),
                f,
                default_flow_style=False,
                indent=2,
            )


def default_policies() -> list[PolicyEntryConfig]:
    """Policy entries used when a room is created without its own."""
    return [
        PolicyEntryConfig(
            name="Insults",
            prompt=(
                "Intervene only when the message contains insults, slurs or profanity "
                "aimed at the other participant. Otherwise stay silent."
            ),
            category="insult",
        ),
        PolicyEntryConfig(
            name="Off topic",
            prompt=(
                "Intervene only when the message clearly drifts away from the debate "
                "topic. Remind the speaker what the topic is."
            ),
            category="off-topic",
        ),
        PolicyEntryConfig(
            name="Fact check",
            prompt=(
                "Intervene only when the message states something factually false or "
                "unverifiable. Briefly explain why the claim is not correct."
            ),
            category="factual",
        ),
    ]


def get_default_config() -> AppConfig:
    """Load default configuration from room_config.json, creating it if needed."""
    config_path = Path("room_config.json")
    if not config_path.exists():
        example_path = Path("room_config.example.json")
        if example_path.exists():
            shutil.copy2(example_path, config_path)
        else:
            template_config = get_template_config()
            with open(config_path, "w", encoding="utf-8") as f:
                json.dump(template_config.model_dump(), f, indent=2)
    return AppConfig.load_from_file(config_path)


def get_template_config() -> AppConfig:
    """Get template configuration for config file generation."""
    return AppConfig(
        room=RoomConfig(
            max_participants=2,
            start_requirement="full",
            turn_duration_seconds=60,
            total_duration_seconds=1800,
        ),
        moderation=ModerationConfig(
            enabled=True,
            provider="openai",
            model="gpt-4o-mini",
            timeout=15.0,
        ),
        motion=MotionConfig(contestable_categories=["factual"], window_seconds=60),
        system=SystemConfig(
            openai=OpenAIConfig(api_key=None),  # Or set OPENAI_API_KEY
            openrouter=OpenRouterConfig(api_key=None),  # Or set OPENROUTER_API_KEY
            log_level="INFO",
        ),
    )
