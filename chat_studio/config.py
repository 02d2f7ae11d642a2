"""Process-wide configuration, loaded once from the environment."""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration. Immutable after load."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        env_ignore_empty=True,
    )

    # Host fallback keys, used when the caller does not supply one
    host_google_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("HOST_GOOGLE_API_KEY", "GOOGLE_API_KEY")
    )
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    openrouter_api_key: str | None = Field(default=None, alias="OPENROUTER_API_KEY")

    tavily_api_key: str | None = Field(default=None, validation_alias=AliasChoices("TAVILY_API_KEY", "TAVILY_KEY"))

    client_origin: str = Field(default="*", alias="CLIENT_ORIGIN")
    default_temperature: float = Field(default=0.7, alias="DEFAULT_TEMPERATURE")
    # Anthropic rejects requests without max_tokens
    max_output_tokens: int = Field(default=4096, alias="MAX_OUTPUT_TOKENS")
    provider_requests_per_minute: int = Field(default=60, alias="PROVIDER_REQUESTS_PER_MINUTE")
    title_model_id: str = Field(default="gemini-2.0-flash", alias="TITLE_MODEL_ID")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL")

    def get_host_key(self, provider: str) -> str | None:
        """Return the operator-supplied key for a provider, if one is configured."""
        host_keys: dict[str, str | None] = {
            "google": self.host_google_api_key,
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "openrouter": self.openrouter_api_key,
        }
        return host_keys.get(provider) or None


@lru_cache
def get_settings() -> Settings:
    """Get or load the process-wide settings instance."""
    return Settings()
