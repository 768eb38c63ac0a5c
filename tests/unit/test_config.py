"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.config import AgentCategory, Settings


def test_defaults_when_environment_empty() -> None:
    settings = Settings.from_env({})
    assert settings.signing_secret is None
    assert settings.gateway_url is None
    assert settings.agent_urls == {}
    assert settings.request_timeout == 30.0
    assert settings.replay_window_seconds == 300
    assert settings.log_level == "INFO"


def test_reads_all_agent_urls() -> None:
    env = {category.env_var: f"http://{category.value}.test" for category in AgentCategory}
    settings = Settings.from_env(env)
    for category in AgentCategory:
        assert settings.endpoint_for(category) == f"http://{category.value}.test"


def test_env_var_names() -> None:
    assert AgentCategory.COMPLIANCE.env_var == "COMPLIANCE_AGENT_URL"
    assert AgentCategory.SPECTRA.env_var == "SPECTRA_AGENT_URL"
    assert AgentCategory.CUSTOMER_SUCCESS.env_var == "CUSTOMER_SUCCESS_AGENT_URL"


def test_empty_values_are_unset() -> None:
    settings = Settings.from_env({
        "SLACK_SIGNING_SECRET": "",
        "PLATFORM_GATEWAY_URL": "  ",
        "COMPLIANCE_AGENT_URL": "",
    })
    assert settings.signing_secret is None
    assert settings.gateway_url is None
    assert settings.endpoint_for(AgentCategory.COMPLIANCE) is None


def test_trailing_slash_stripped() -> None:
    settings = Settings.from_env({
        "PLATFORM_GATEWAY_URL": "https://gw.test/",
        "SCIENCE_AGENT_URL": "https://science.test//",
    })
    assert settings.gateway_url == "https://gw.test"
    assert settings.endpoint_for(AgentCategory.SCIENCE) == "https://science.test"


def test_timeout_and_log_level() -> None:
    settings = Settings.from_env({"AGENT_TIMEOUT_SECONDS": "12.5", "LOG_LEVEL": "debug"})
    assert settings.request_timeout == 12.5
    assert settings.log_level == "DEBUG"


def test_reads_os_environ_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SLACK_SIGNING_SECRET", "s3cret")
    monkeypatch.setenv("SLACK_BOT_TOKEN", "xoxb-1")
    settings = Settings.from_env()
    assert settings.signing_secret == "s3cret"
    assert settings.bot_token == "xoxb-1"


def test_settings_are_immutable() -> None:
    settings = Settings.from_env({})
    with pytest.raises(ValidationError):
        settings.gateway_url = "http://changed.test"  # type: ignore[misc]
