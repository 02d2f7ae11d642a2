"""Adapter selection by provider."""

from chat_studio.clients.anthropic import AnthropicAdapter
from chat_studio.clients.base import ProviderAdapter
from chat_studio.clients.google import GoogleAdapter
from chat_studio.clients.openai_compat import OpenAIAdapter, OpenRouterAdapter
from chat_studio.clients.rate_limit import ProviderRateLimiter
from chat_studio.config import Settings
from chat_studio.errors import UnsupportedProvider

ADAPTERS: dict[str, type[ProviderAdapter]] = {
    "google": GoogleAdapter,
    "anthropic": AnthropicAdapter,
    "openai": OpenAIAdapter,
    "openrouter": OpenRouterAdapter,
}


def get_adapter(
    provider: str,
    settings: Settings | None = None,
    rate_limiter: ProviderRateLimiter | None = None,
) -> ProviderAdapter:
    """Create the adapter for a provider.

    Raises:
        UnsupportedProvider: If no adapter exists for the provider
    """
    adapter_class = ADAPTERS.get(provider)
    if adapter_class is None:
        raise UnsupportedProvider(provider)
    return adapter_class(settings=settings, rate_limiter=rate_limiter)
