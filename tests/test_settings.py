"""Test configuration loading and the Redis setup helpers"""

import os

import pytest

from lifeline_core.config import LifelineSettings, get_settings, reset_settings
from lifeline_core.infrastructure.redis_setup import parse_sentinel_hosts

_ENV_VARS = [
    "CHAT_PROVIDER", "GEMINI_API_KEY", "OPENAI_API_KEY", "REDIS_MODE", "REDIS_PORT",
    "INVESTIGATION_COST", "ALLOW_FOLLOW_UP_OVERRIDE", "NOTIFICATION_TIMEOUT", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # Private copy so values loaded from .env files do not leak into other tests
    monkeypatch.setattr(os, "environ", dict(os.environ))
    monkeypatch.chdir(tmp_path)
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


def test_defaults():
    settings = LifelineSettings.from_env()

    assert settings.llm.provider == "gemini"
    assert settings.llm.gemini_api_key is None
    assert settings.redis.mode == "standalone"
    assert settings.workflow.investigation_cost == 500
    assert settings.workflow.allow_follow_up_override is False
    assert settings.workflow.notification_timeout == 5.0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CHAT_PROVIDER", " OpenAI ")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("ALLOW_FOLLOW_UP_OVERRIDE", "true")
    monkeypatch.setenv("INVESTIGATION_COST", "250")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = LifelineSettings.from_env()

    assert settings.llm.provider == "openai"
    assert settings.llm.openai_api_key.get_secret_value() == "sk-test"
    assert "sk-test" not in repr(settings)
    assert settings.workflow.allow_follow_up_override is True
    assert settings.workflow.investigation_cost == 250
    assert settings.log_level == "DEBUG"


def test_dotenv_file_is_loaded(tmp_path):
    (tmp_path / ".env").write_text("INVESTIGATION_COST=42\n")
    assert LifelineSettings.from_env().workflow.investigation_cost == 42


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_parse_sentinel_hosts():
    assert parse_sentinel_hosts("s1:26379, s2") == [("s1", 26379), ("s2", 26379)]
    assert parse_sentinel_hosts("") == []
