"""Tests for environment-driven configuration."""
from __future__ import annotations

import pytest

from agentflow.config import AgentSettings, Config

_VARS = [
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_MODEL",
    "OPENAI_MAX_CONCURRENT",
    "AZURE_OPENAI_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_DEPLOYMENT",
    "AGENTFLOW_MAX_STEPS",
    "AGENTFLOW_DUPLICATE_THRESHOLD",
    "AGENTFLOW_REACT_MAX_ROUNDS",
    "AGENTFLOW_DISPATCH_MAX_ROUNDS",
    "AGENTFLOW_EVENT_CAPACITY",
    "AGENTFLOW_TEMPERATURE",
    "AGENTFLOW_MAX_TOKENS",
    "ENVIRONMENT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults_without_environment(clean_env) -> None:
    config = Config.from_env()

    assert config.openai is None
    assert config.azure_openai is None
    assert config.agents == AgentSettings()
    assert config.agents.max_steps == 10
    assert config.agents.duplicate_threshold == 2
    assert config.agents.event_capacity == 100
    assert config.max_tokens is None
    assert config.default_model == "gpt-4"


def test_openai_and_agent_settings_from_environment(clean_env) -> None:
    clean_env.setenv("OPENAI_API_KEY", "sk-test")
    clean_env.setenv("OPENAI_MODEL", "gpt-4o-mini")
    clean_env.setenv("OPENAI_MAX_CONCURRENT", "4")
    clean_env.setenv("AGENTFLOW_MAX_STEPS", "3")
    clean_env.setenv("AGENTFLOW_REACT_MAX_ROUNDS", "7")
    clean_env.setenv("AGENTFLOW_MAX_TOKENS", "256")
    clean_env.setenv("ENVIRONMENT", "production")

    config = Config.from_env()

    assert config.openai.api_key == "sk-test"
    assert config.openai.max_concurrent == 4
    assert config.default_model == "gpt-4o-mini"
    assert config.agents.max_steps == 3
    assert config.agents.react_max_rounds == 7
    assert config.max_tokens == 256
    assert config.environment == "production"


def test_azure_requires_key_and_endpoint(clean_env) -> None:
    clean_env.setenv("AZURE_OPENAI_KEY", "azure-key")
    assert Config.from_env().azure_openai is None

    clean_env.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")
    clean_env.setenv("AZURE_OPENAI_DEPLOYMENT", "team-gpt")
    config = Config.from_env()
    assert config.azure_openai.endpoint == "https://example.openai.azure.com"
    assert config.default_model == "team-gpt"
