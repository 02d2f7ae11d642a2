"""Shared pytest configuration."""

import pytest

CONFIG_ENV_VARS = (
    "HOST_GOOGLE_API_KEY",
    "GOOGLE_API_KEY",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "TAVILY_API_KEY",
    "TAVILY_KEY",
    "CLIENT_ORIGIN",
    "DEFAULT_TEMPERATURE",
    "MAX_OUTPUT_TOKENS",
    "PROVIDER_REQUESTS_PER_MINUTE",
    "TITLE_MODEL_ID",
    "OPENROUTER_BASE_URL",
    "LOG_LEVEL",
    "LOG_SDK_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep the developer's keys and .env file out of Settings built by tests."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
