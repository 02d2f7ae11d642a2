"""Request preparation and stream opening shared by the HTTP route and the stream controller."""

from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from contextlib import aclosing
from dataclasses import dataclass

from chat_studio.clients.base import ProviderAdapter
from chat_studio.clients.factory import get_adapter
from chat_studio.clients.rate_limit import ProviderRateLimiter
from chat_studio.clients.tokens import TokenBudget, get_token_budget
from chat_studio.config import Settings, get_settings
from chat_studio.models.ai_models import ModelConfig, get_model_config
from chat_studio.models.llm import ChatMessage, StreamEvent, TextDelta
from chat_studio.orchestration.factory import create_orchestrator
from chat_studio.prompts import build_system_prompt
from chat_studio.services.keys import KeyResolver, ResolvedKey
from chat_studio.tools.executor import ToolExecutor
from chat_studio.tools.registry import ToolsRegistry, get_tools_registry
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

AdapterFactory = Callable[[str], ProviderAdapter]


@dataclass(frozen=True)
class PreparedChat:
    """A model configuration paired with the key that authenticates it."""

    config: ModelConfig
    key: ResolvedKey


class ChatPipeline:
    """Turns a model name and history into a stream of events from the right provider.

    ``prepare`` does everything that can fail before a provider is contacted;
    ``open_stream`` then applies the system prompt and context truncation and
    picks between a plain text stream and a tool loop.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        key_resolver: KeyResolver | None = None,
        tools_registry: ToolsRegistry | None = None,
        token_budget: TokenBudget | None = None,
        rate_limiter: ProviderRateLimiter | None = None,
        adapter_factory: AdapterFactory | None = None,
    ):
        self.settings = settings or get_settings()
        self.key_resolver = key_resolver or KeyResolver(self.settings)
        self.tools_registry = tools_registry or get_tools_registry(self.settings)
        self.token_budget = token_budget or get_token_budget()
        self.rate_limiter = rate_limiter
        self._adapter_factory = adapter_factory

    def adapter_for(self, provider: str) -> ProviderAdapter:
        """Build the adapter for a provider.

        Raises:
            UnsupportedProvider: If no adapter exists for the provider
        """
        if self._adapter_factory is not None:
            return self._adapter_factory(provider)
        return get_adapter(provider, settings=self.settings, rate_limiter=self.rate_limiter)

    def prepare(
        self,
        model_name: str,
        user_api_key: str | None = None,
        user_keys: Mapping[str, str | None] | None = None,
    ) -> PreparedChat:
        """Resolve the model configuration and API key for a request.

        Args:
            model_name: Display name from the model catalog
            user_api_key: Caller key for the selected model's own provider
            user_keys: Caller keys by provider, e.g. from request headers

        Returns:
            The effective configuration, possibly rerouted to OpenRouter, and its key

        Raises:
            UnknownModel: If the model name is not configured
            MissingCredential: If no key is available on any route
        """
        config = get_model_config(model_name)
        keys = dict(user_keys or {})
        if user_api_key and user_api_key.strip():
            keys[config.provider] = user_api_key

        config, key = self.key_resolver.resolve_route(config, keys)
        return PreparedChat(config=config, key=key)

    async def open_stream(
        self,
        prepared: PreparedChat,
        history: Sequence[ChatMessage],
        web_search_enabled: bool = False,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream events for a prepared request.

        Empty messages are dropped and the history is truncated to the model's
        context window before any provider call.

        Yields:
            Text deltas, plus tool events when web search is enabled

        Raises:
            ProviderError: On transport or API failure
        """
        config = prepared.config
        system = build_system_prompt(web_search_enabled)
        messages = [message for message in history if message.content]
        messages = self.token_budget.truncate(messages, config.context_window, system)

        if not config.accepts_temperature:
            temperature = None
        elif temperature is None:
            temperature = self.settings.default_temperature

        adapter = self.adapter_for(config.provider)
        tools = self.tools_registry.available_tools(web_search_enabled)
        logger.info(
            f"Streaming {config.model_id} via {config.provider} "
            f"({len(messages)} messages, {len(tools)} tools, {prepared.key.source} key)"
        )

        if tools:
            orchestrator = create_orchestrator(adapter, ToolExecutor(self.tools_registry))
            events = orchestrator.stream(
                prepared.key.api_key, config.model_id, messages, tools, system=system, temperature=temperature
            )
            async with aclosing(events):
                async for event in events:
                    yield event
            return

        deltas = adapter.stream(prepared.key.api_key, config.model_id, messages, system=system, temperature=temperature)
        async with aclosing(deltas):
            async for delta in deltas:
                yield TextDelta(delta=delta)
