"""Tests for layered settings loading."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from P2Resolve.errors import ConfigurationError
from P2Resolve.settings import (
    LoggingSettings,
    ResolverSettings,
    get_settings,
    load_settings,
    reset_settings,
)


def test_defaults():
    settings = load_settings()

    assert settings.offline is False
    assert settings.repositories == []
    assert settings.retry.max_attempts == 4
    assert settings.concurrency.workers == 8
    assert settings.cache.dir.is_absolute()


def test_yaml_file_and_overrides_merge(tmp_path):
    config = tmp_path / "p2resolve.yaml"
    config.write_text(
        "repositories:\n"
        "  - https://download.eclipse.org/releases/latest/\n"
        "http:\n"
        "  timeout_read: 10\n"
        "  user_agent: custom/1.0\n"
        "concurrency:\n"
        "  workers: 2\n",
        encoding="utf-8",
    )

    settings = load_settings(config, http={"timeout_read": 12.5}, offline=None)

    assert settings.repositories == ["https://download.eclipse.org/releases/latest/"]
    assert settings.http.timeout_read == 12.5
    assert settings.http.user_agent == "custom/1.0"
    assert settings.concurrency.workers == 2
    assert settings.offline is False


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("P2RESOLVE_OFFLINE", "true")
    monkeypatch.setenv("P2RESOLVE_CONCURRENCY__WORKERS", "3")

    settings = load_settings()

    assert settings.offline is True
    assert settings.concurrency.workers == 3


def test_explicit_values_beat_environment(monkeypatch):
    monkeypatch.setenv("P2RESOLVE_OFFLINE", "true")

    assert load_settings(offline=False).offline is False


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_settings(tmp_path / "absent.yaml")


@pytest.mark.parametrize("body", ["- just\n- a list\n", "key: [unclosed\n"])
def test_invalid_yaml(tmp_path, body):
    config = tmp_path / "bad.yaml"
    config.write_text(body, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(config)


def test_empty_yaml_is_defaults(tmp_path):
    config = tmp_path / "empty.yaml"
    config.write_text("", encoding="utf-8")

    assert load_settings(config).retry.max_attempts == 4


@pytest.mark.parametrize(
    "overrides",
    [
        {"concurrency": {"workers": 0}},
        {"retry": {"max_attempts": 0}},
        {"unknown_field": True},
        {"logging": {"level": "CHATTY"}},
    ],
)
def test_validation_errors(overrides):
    with pytest.raises(ConfigurationError, match="Invalid settings"):
        load_settings(**overrides)


def test_logging_level_is_normalized():
    settings = LoggingSettings(level="debug")

    assert settings.level == "DEBUG"
    assert settings.level_int() == logging.DEBUG


def test_json_alias():
    assert LoggingSettings(json=False).emit_json_logs is False


def test_settings_are_frozen():
    settings = load_settings()

    with pytest.raises(ValidationError):
        settings.offline = True  # type: ignore[misc]


def test_config_hash_tracks_values():
    assert load_settings().config_hash() == load_settings().config_hash()
    assert load_settings().config_hash() != load_settings(offline=True).config_hash()


def test_get_settings_is_cached():
    first = get_settings()

    assert isinstance(first, ResolverSettings)
    assert get_settings() is first
    reset_settings()
    assert get_settings() is not first
