"""Orchestrator selection by provider."""

from chat_studio.clients.base import ProviderAdapter
from chat_studio.errors import UnsupportedProvider
from chat_studio.orchestration.anthropic_tools import AnthropicToolOrchestrator
from chat_studio.orchestration.base import ToolOrchestrator
from chat_studio.orchestration.google_tools import GoogleToolOrchestrator
from chat_studio.orchestration.openai_tools import OpenAIToolOrchestrator
from chat_studio.tools.executor import ToolExecutor

ORCHESTRATORS: dict[str, type[ToolOrchestrator]] = {
    "google": GoogleToolOrchestrator,
    "anthropic": AnthropicToolOrchestrator,
    "openai": OpenAIToolOrchestrator,
    "openrouter": OpenAIToolOrchestrator,
}


def create_orchestrator(adapter: ProviderAdapter, executor: ToolExecutor) -> ToolOrchestrator:
    """Create a fresh orchestrator for the adapter's provider.

    Raises:
        UnsupportedProvider: If the provider has no tool protocol implementation
    """
    orchestrator_class = ORCHESTRATORS.get(adapter.provider)
    if orchestrator_class is None:
        raise UnsupportedProvider(adapter.provider)
    return orchestrator_class(adapter, executor)
