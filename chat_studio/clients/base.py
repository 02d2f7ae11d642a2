"""Provider adapter interface shared by every LLM provider."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterator, Sequence
from contextlib import aclosing, contextmanager
from typing import Any, ClassVar

import httpx

from chat_studio.clients.rate_limit import ProviderRateLimiter, get_rate_limiter
from chat_studio.config import Settings, get_settings
from chat_studio.errors import ProviderError
from chat_studio.models.ai_models import Provider
from chat_studio.models.llm import ChatMessage
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[[str], Any]


def split_system(messages: Sequence[ChatMessage], system: str | None = None) -> tuple[str | None, list[ChatMessage]]:
    """Separate system instructions from conversational turns.

    System-role messages are merged into the system prompt. Only non-empty user and
    assistant turns are kept; ``data`` messages never reach a provider.
    """
    system_parts = [system] if system else []
    turns: list[ChatMessage] = []
    for message in messages:
        if message.role == "system":
            if message.content.strip():
                system_parts.append(message.content.strip())
        elif message.role in ("user", "assistant") and message.content:
            turns.append(message)

    return ("\n\n".join(system_parts) or None), turns


class ProviderAdapter(ABC):
    """Translates provider-agnostic messages into one provider's wire protocol.

    Subclasses implement ``create_client`` plus the two raw calls. The public
    ``stream``/``complete`` wrap them with throttling and error translation, so
    callers only ever see ``ProviderError`` for transport and API failures.
    """

    provider: ClassVar[Provider]
    sdk_errors: ClassVar[tuple[type[BaseException], ...]] = (httpx.HTTPError,)

    def __init__(
        self,
        settings: Settings | None = None,
        rate_limiter: ProviderRateLimiter | None = None,
        client_factory: ClientFactory | None = None,
    ):
        """Initialize adapter.

        Args:
            settings: Runtime configuration (defaults to process settings)
            rate_limiter: Request throttle (defaults to the process-wide limiter)
            client_factory: Builds an SDK client from an API key; overrides
                ``create_client``
        """
        self.settings = settings or get_settings()
        self.rate_limiter = rate_limiter or get_rate_limiter(self.settings.provider_requests_per_minute)
        self._client_factory = client_factory

    def client(self, api_key: str) -> Any:
        """Build an SDK client bound to one API key."""
        if self._client_factory is not None:
            return self._client_factory(api_key)
        return self.create_client(api_key)

    @abstractmethod
    def create_client(self, api_key: str) -> Any:
        """Create the provider SDK client."""

    @contextmanager
    def translate_errors(self) -> Iterator[None]:
        """Re-raise provider SDK and transport failures as ``ProviderError``."""
        try:
            yield
        except self.sdk_errors as e:
            logger.error(f"{self.provider} request failed: {e}")
            raise ProviderError(self.provider, str(e)) from e

    async def throttle(self) -> None:
        await self.rate_limiter.acquire(self.provider)

    async def stream(
        self,
        api_key: str,
        model_id: str,
        messages: Sequence[ChatMessage],
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """Stream text deltas for a conversation.

        The sequence ends when the provider signals completion and cannot be
        restarted. Closing it early closes the underlying HTTP stream.

        Args:
            api_key: Provider API key
            model_id: Provider-specific model string
            messages: Conversation history, oldest first
            system: Optional system prompt
            temperature: Sampling temperature; omitted from the request when None

        Yields:
            Text deltas in arrival order

        Raises:
            ProviderError: On transport or API failure
        """
        system, turns = split_system(messages, system)
        logger.debug(f"Opening {self.provider} stream for {model_id} with {len(turns)} messages")

        with self.translate_errors():
            await self.throttle()
            async with aclosing(self._stream(self.client(api_key), model_id, turns, system, temperature)) as deltas:
                async for delta in deltas:
                    yield delta

    async def complete(
        self,
        api_key: str,
        model_id: str,
        messages: Sequence[ChatMessage],
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Run a one-shot, non-streaming completion and return its text.

        Raises:
            ProviderError: On transport or API failure
        """
        system, turns = split_system(messages, system)
        logger.debug(f"Requesting {self.provider} completion for {model_id} with {len(turns)} messages")

        with self.translate_errors():
            await self.throttle()
            return await self._complete(self.client(api_key), model_id, turns, system, temperature)

    @abstractmethod
    def _stream(
        self,
        client: Any,
        model_id: str,
        turns: list[ChatMessage],
        system: str | None,
        temperature: float | None,
    ) -> AsyncIterator[str]:
        """Provider-specific streaming request. ``turns`` holds only user/assistant messages."""

    @abstractmethod
    async def _complete(
        self,
        client: Any,
        model_id: str,
        turns: list[ChatMessage],
        system: str | None,
        temperature: float | None,
    ) -> str:
        """Provider-specific non-streaming request."""
