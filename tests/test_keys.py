"""Tests for API key resolution."""

import pytest
from pydantic import ValidationError

from chat_studio.config import Settings
from chat_studio.errors import MissingCredential
from chat_studio.models.ai_models import get_model_config
from chat_studio.services.keys import KeyResolver


class TestResolve:
    """Tests for user → host key resolution."""

    def test_empty_user_key_falls_back_to_host(self):
        """Test that an empty user key resolves to the host key."""
        resolver = KeyResolver(Settings(host_google_api_key="host-google"))
        resolved = resolver.resolve("google", "")
        assert resolved.api_key == "host-google"
        assert resolved.source == "host"

    def test_user_key_wins_over_host_key(self):
        """Test that a non-empty user key always wins."""
        resolver = KeyResolver(Settings(openai_api_key="host-openai"))
        resolved = resolver.resolve("openai", "user-openai")
        assert resolved.api_key == "user-openai"
        assert resolved.source == "user"

    def test_user_key_without_host_key(self):
        """Test that a user key works when no host key is configured."""
        resolved = KeyResolver(Settings()).resolve("anthropic", "user-anthropic")
        assert resolved.source == "user"

    def test_whitespace_user_key_is_empty(self):
        """Test that a whitespace-only user key counts as absent."""
        resolver = KeyResolver(Settings(anthropic_api_key="host-anthropic"))
        assert resolver.resolve("anthropic", "   ").source == "host"

    def test_missing_credential(self):
        """Test that no user key and no host key raises MissingCredential."""
        with pytest.raises(MissingCredential) as exc_info:
            KeyResolver(Settings()).resolve("openrouter", None)
        assert exc_info.value.provider == "openrouter"

    def test_key_is_hidden_from_repr(self):
        """Test that the key itself never shows up in logs of the resolved value."""
        resolved = KeyResolver(Settings()).resolve("google", "secret-key")
        assert "secret-key" not in repr(resolved)


class TestResolveRoute:
    """Tests for the alternate-provider fallback."""

    def test_primary_provider_kept_when_key_exists(self):
        """Test that a model keeps its own provider when it has a key."""
        resolver = KeyResolver(Settings(anthropic_api_key="host-anthropic", openrouter_api_key="host-or"))
        config, key = resolver.resolve_route(get_model_config("Claude 4 Sonnet"), {})
        assert config.provider == "anthropic"
        assert key.api_key == "host-anthropic"

    def test_falls_back_to_openrouter(self):
        """Test rerouting to OpenRouter when only an OpenRouter key exists."""
        resolver = KeyResolver(Settings())
        config, key = resolver.resolve_route(get_model_config("GPT-4.1"), {"openrouter": "user-or"})
        assert config.provider == "openrouter"
        assert config.model_id == "openai/gpt-4o"
        assert key.api_key == "user-or"
        assert key.source == "user"

    def test_no_route_raises_for_primary_provider(self):
        """Test that with no key anywhere the primary provider is reported missing."""
        with pytest.raises(MissingCredential) as exc_info:
            KeyResolver(Settings()).resolve_route(get_model_config("Gemini 2.0 Flash"), {})
        assert exc_info.value.provider == "google"

    def test_user_key_for_primary_prevents_fallback(self):
        """Test that a user key for the primary provider beats a host OpenRouter key."""
        resolver = KeyResolver(Settings(openrouter_api_key="host-or"))
        config, key = resolver.resolve_route(get_model_config("Gemini 2.0 Flash"), {"google": "user-google"})
        assert config.provider == "google"
        assert key.api_key == "user-google"


class TestSettings:
    """Tests for host key lookup."""

    def test_empty_host_key_is_absent(self):
        """Test that an empty configured key counts as absent."""
        assert Settings(openai_api_key="").get_host_key("openai") is None

    def test_env_reads_fallback_names(self, monkeypatch):
        """Test that legacy environment variable names are honored."""
        monkeypatch.setenv("GOOGLE_API_KEY", "env-google")
        monkeypatch.setenv("TAVILY_KEY", "env-tavily")
        monkeypatch.setenv("PROVIDER_REQUESTS_PER_MINUTE", "30")

        settings = Settings()
        assert settings.get_host_key("google") == "env-google"
        assert settings.tavily_api_key == "env-tavily"
        assert settings.provider_requests_per_minute == 30

    def test_primary_name_wins(self, monkeypatch):
        """Test that HOST_GOOGLE_API_KEY takes precedence over GOOGLE_API_KEY."""
        monkeypatch.setenv("HOST_GOOGLE_API_KEY", "host-google")
        monkeypatch.setenv("GOOGLE_API_KEY", "env-google")

        assert Settings().get_host_key("google") == "host-google"

    def test_empty_env_value_is_absent(self, monkeypatch):
        """Test that an empty environment variable leaves the key unset."""
        monkeypatch.setenv("OPENAI_API_KEY", "")

        assert Settings().get_host_key("openai") is None

    def test_settings_are_frozen(self):
        """Test that settings cannot change after load."""
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.openai_api_key = "changed"  # type: ignore[misc]
