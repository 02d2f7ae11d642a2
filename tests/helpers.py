"""Fakes shared by the test modules: SDK clients, search backend, pipeline and sink."""

import asyncio
from collections.abc import Iterable
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, Mock

from chat_studio.clients.rate_limit import ProviderRateLimiter
from chat_studio.config import Settings
from chat_studio.models.ai_models import get_model_config
from chat_studio.orchestration.pipeline import PreparedChat
from chat_studio.services.keys import ResolvedKey
from chat_studio.tools.web_search import SearchResult


def fast_limiter() -> ProviderRateLimiter:
    """A rate limiter that never makes tests wait."""
    return ProviderRateLimiter(requests_per_minute=10_000)


def make_settings(**overrides: Any) -> Settings:
    return Settings(**overrides)


class FakeAsyncStream:
    """Async-iterable stand-in for an SDK streaming response."""

    def __init__(self, items: Iterable[Any]):
        self.items = list(items)
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self.items:
            yield item

    async def close(self) -> None:
        self.closed = True

    async def aclose(self) -> None:
        self.closed = True


# OpenAI-shaped chunks


def openai_chunk(content: str | None = None, tool_calls: list[Any] | None = None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))])


def openai_tool_fragment(
    index: int, id: str | None = None, name: str | None = None, arguments: str | None = None
) -> SimpleNamespace:
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


def openai_completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_openai_client(*responses: Any) -> Mock:
    client = Mock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    return client


# Anthropic-shaped events and blocks


def anthropic_text_event(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="content_block_delta", delta=SimpleNamespace(type="text_delta", text=text))


def anthropic_text_block(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="text", text=text)


def anthropic_tool_block(id: str, name: str, input: dict[str, Any]) -> SimpleNamespace:
    return SimpleNamespace(type="tool_use", id=id, name=name, input=input)


def anthropic_response(*blocks: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(content=list(blocks))


def fake_anthropic_client(*responses: Any) -> Mock:
    client = Mock()
    client.messages.create = AsyncMock(side_effect=list(responses))
    return client


# Gemini-shaped responses


def google_response(text: str | None = None, function_calls: list[Any] | None = None) -> SimpleNamespace:
    parts = [SimpleNamespace(text=text, thought=None)] if text else []
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))],
        function_calls=function_calls,
    )


def google_function_call(name: str, args: dict[str, Any], id: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(id=id, name=name, args=args)


def fake_google_client(
    stream_chunks: Iterable[Any] = (),
    completion: Any = None,
    chat_responses: Iterable[Any] = (),
) -> Mock:
    client = Mock()
    client.aio.models.generate_content_stream = AsyncMock(return_value=FakeAsyncStream(stream_chunks))
    client.aio.models.generate_content = AsyncMock(return_value=completion)
    chat = Mock()
    chat.send_message = AsyncMock(side_effect=list(chat_responses))
    client.aio.chats.create = Mock(return_value=chat)
    client.chat = chat
    return client


# Search, pipeline and persistence


class FakeSearchBackend:
    """Search backend returning canned results and recording queries."""

    def __init__(self, results: list[SearchResult] | None = None, error: Exception | None = None):
        self.results = results or []
        self.error = error
        self.queries: list[tuple[str, int]] = []

    async def search(self, query: str, max_results: int) -> list[SearchResult]:
        self.queries.append((query, max_results))
        if self.error is not None:
            raise self.error
        return self.results[:max_results]


class ScriptedPipeline:
    """Pipeline that replays a fixed list of events, optionally failing afterwards."""

    def __init__(
        self,
        events: Iterable[Any] = (),
        error: Exception | None = None,
        prepare_error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ):
        self.events = list(events)
        self.error = error
        self.prepare_error = prepare_error
        self.gate = gate
        self.prepared: list[str] = []
        self.histories: list[list[Any]] = []
        self.closed = False

    def prepare(self, model_name, user_api_key=None, user_keys=None) -> PreparedChat:
        if self.prepare_error is not None:
            raise self.prepare_error
        self.prepared.append(model_name)
        config = get_model_config(model_name)
        return PreparedChat(config=config, key=ResolvedKey(provider=config.provider, api_key="test", source="host"))

    async def open_stream(self, prepared, history, web_search_enabled=False, temperature=None):
        self.histories.append(list(history))
        try:
            for index, event in enumerate(self.events):
                if self.gate is not None and index > 0:
                    await self.gate.wait()
                yield event
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


class RecordingSink:
    """Message sink that records every write."""

    def __init__(self):
        self.updates: list[str] = []
        self.finals: list[str] = []
        self.final_parts: list[list[Any]] = []

    async def update_content(self, message_id, content, parts=None) -> None:
        self.updates.append(content)

    async def finalize_content(self, message_id, content, parts=None) -> None:
        self.finals.append(content)
        self.final_parts.append(list(parts or []))


async def wait_until(predicate, attempts: int = 200) -> None:
    """Yield to the event loop until the predicate holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")
