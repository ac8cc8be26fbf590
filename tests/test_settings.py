"""Tests for configuration loading and validation."""

import json
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from config.settings import (
    AppConfig,
    ModerationConfig,
    MotionConfig,
    RoomConfig,
    get_default_config,
    get_template_config,
)

pytestmark = pytest.mark.unit


def test_defaults() -> None:
    config = AppConfig()

    assert config.room.max_participants == 2
    assert config.room.start_requirement == "full"
    assert config.moderation.provider == "openai"
    assert [p.category for p in config.moderation.policies] == ["insult", "off-topic", "factual"]
    assert config.motion.contestable_categories == ["factual"]
    assert config.motion.max_attempts == 2


def test_invalid_values_rejected() -> None:
    with pytest.raises(ValidationError):
        RoomConfig(max_participants=0)
    with pytest.raises(ValidationError):
        RoomConfig(start_requirement="half")
    with pytest.raises(ValidationError):
        ModerationConfig(provider="anthropic")


def test_contestable_categories() -> None:
    motion = MotionConfig(contestable_categories=["Factual"])
    assert motion.is_contestable("factual")
    assert not motion.is_contestable("insult")

    wildcard = MotionConfig(contestable_categories=["*"])
    assert wildcard.is_contestable("insult")


def test_load_from_file(tmp_path: Path) -> None:
    path = tmp_path / "room_config.json"
    path.write_text(json.dumps({"room": {"max_participants": 4}, "motion": {"window_seconds": 30}}))

    config = AppConfig.load_from_file(path)

    assert config.room.max_participants == 4
    assert config.motion.window_seconds == 30
    assert config.moderation.enabled is True


def test_load_from_file_errors(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        AppConfig.load_from_file(tmp_path / "missing.json")

    path = tmp_path / "room_config.json"
    path.write_text(json.dumps({"tournament": {}}))
    with pytest.raises(ValueError, match="Unknown config sections"):
        AppConfig.load_from_file(path)


def test_save_to_file_writes_yaml(tmp_path: Path) -> None:
    path = tmp_path / "out" / "room_config.yaml"
    AppConfig(room=RoomConfig(max_participants=3)).save_to_file(path)

    data = yaml.safe_load(path.read_text())
    assert data == {"room": {"max_participants": 3}}


def test_get_default_config_creates_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = get_default_config()

    assert (tmp_path / "room_config.json").exists()
    assert config == get_template_config()


def test_example_config_is_loadable() -> None:
    example = Path(__file__).parent.parent / "room_config.example.json"
    config = AppConfig.load_from_file(example)
    assert len(config.moderation.policies) == 3
