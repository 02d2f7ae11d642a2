"""Static model catalog: display name to provider-specific model configuration."""

from dataclasses import dataclass, replace
from typing import Literal

from chat_studio.errors import UnknownModel

Provider = Literal["google", "anthropic", "openai", "openrouter"]

PROVIDERS: tuple[Provider, ...] = ("google", "anthropic", "openai", "openrouter")

PROVIDER_HEADER_KEYS: dict[Provider, str] = {
    "google": "X-Google-API-Key",
    "anthropic": "X-Anthropic-API-Key",
    "openai": "X-OpenAI-API-Key",
    "openrouter": "X-OpenRouter-API-Key",
}

DEFAULT_CONTEXT_WINDOW = 128_000


@dataclass(frozen=True)
class ModelConfig:
    """Configuration for a single selectable model."""

    model_id: str
    provider: Provider
    header_key: str
    supports_reasoning: bool = False
    can_toggle_thinking: bool = False
    open_router_model_id: str | None = None
    context_window: int = DEFAULT_CONTEXT_WINDOW
    accepts_temperature: bool = True

    def via_openrouter(self) -> "ModelConfig":
        """Return the OpenRouter-routed variant of this model.

        Raises:
            ValueError: If the model has no OpenRouter equivalent
        """
        if not self.open_router_model_id:
            raise ValueError(f"Model {self.model_id} has no OpenRouter equivalent")

        return replace(
            self,
            model_id=self.open_router_model_id,
            provider="openrouter",
            header_key=PROVIDER_HEADER_KEYS["openrouter"],
        )


MODEL_CONFIGS: dict[str, ModelConfig] = {
    "Gemini 2.5 Pro": ModelConfig(
        model_id="gemini-2.5-pro-preview-05-06",
        provider="google",
        header_key=PROVIDER_HEADER_KEYS["google"],
        supports_reasoning=True,
        open_router_model_id="google/gemini-pro-1.5",
        context_window=1_048_576,
    ),
    "Gemini 2.5 Flash": ModelConfig(
        model_id="gemini-2.5-flash-preview-04-17",
        provider="google",
        header_key=PROVIDER_HEADER_KEYS["google"],
        supports_reasoning=True,
        open_router_model_id="google/gemini-flash-1.5",
        context_window=1_048_576,
    ),
    "Gemini 2.0 Flash": ModelConfig(
        model_id="gemini-2.0-flash",
        provider="google",
        header_key=PROVIDER_HEADER_KEYS["google"],
        open_router_model_id="google/gemini-2.0-flash-exp:free",
    ),
    "Claude 4 Sonnet": ModelConfig(
        model_id="claude-sonnet-4-20250514",
        provider="anthropic",
        header_key=PROVIDER_HEADER_KEYS["anthropic"],
        supports_reasoning=True,
        can_toggle_thinking=True,
        open_router_model_id="anthropic/claude-3.5-sonnet",
        context_window=200_000,
    ),
    "Claude Haiku 3.5": ModelConfig(
        model_id="claude-3-5-haiku-20241022",
        provider="anthropic",
        header_key=PROVIDER_HEADER_KEYS["anthropic"],
        open_router_model_id="anthropic/claude-3.5-haiku",
        context_window=200_000,
    ),
    "Claude 4 Opus": ModelConfig(
        model_id="claude-opus-4-20250514",
        provider="anthropic",
        header_key=PROVIDER_HEADER_KEYS["anthropic"],
        supports_reasoning=True,
        can_toggle_thinking=True,
        open_router_model_id="anthropic/claude-3-opus",
        context_window=200_000,
    ),
    "GPT-4.1": ModelConfig(
        model_id="gpt-4.1",
        provider="openai",
        header_key=PROVIDER_HEADER_KEYS["openai"],
        open_router_model_id="openai/gpt-4o",
    ),
    "GPT-4.1-mini": ModelConfig(
        model_id="gpt-4.1-mini",
        provider="openai",
        header_key=PROVIDER_HEADER_KEYS["openai"],
        open_router_model_id="openai/gpt-4o-mini",
    ),
    "GPT-4.1-nano": ModelConfig(
        model_id="gpt-4.1-nano",
        provider="openai",
        header_key=PROVIDER_HEADER_KEYS["openai"],
        open_router_model_id="openai/gpt-4o-mini",
    ),
    "o3": ModelConfig(
        model_id="o3",
        provider="openai",
        header_key=PROVIDER_HEADER_KEYS["openai"],
        supports_reasoning=True,
        open_router_model_id="openai/o1-preview",
        accepts_temperature=False,
    ),
    "o4-mini": ModelConfig(
        model_id="o4-mini",
        provider="openai",
        header_key=PROVIDER_HEADER_KEYS["openai"],
        supports_reasoning=True,
        open_router_model_id="openai/o1-mini",
        accepts_temperature=False,
    ),
    "DeepSeek R1": ModelConfig(
        model_id="deepseek/deepseek-r1-0528:free",
        provider="openrouter",
        header_key=PROVIDER_HEADER_KEYS["openrouter"],
        supports_reasoning=True,
        can_toggle_thinking=True,
        open_router_model_id="deepseek/deepseek-r1-0528:free",
        context_window=32_000,
    ),
    "Gemini 2.0 Flash (OpenRouter)": ModelConfig(
        model_id="google/gemini-2.0-flash-exp:free",
        provider="openrouter",
        header_key=PROVIDER_HEADER_KEYS["openrouter"],
        open_router_model_id="google/gemini-2.0-flash-exp:free",
    ),
}


def get_model_config(name: str) -> ModelConfig:
    """Look up a model by display name.

    Raises:
        UnknownModel: If the name is not in the catalog
    """
    try:
        return MODEL_CONFIGS[name]
    except KeyError:
        raise UnknownModel(name) from None
