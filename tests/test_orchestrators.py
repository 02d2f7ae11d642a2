"""Tests for the provider tool-calling loops."""

import json

import httpx
import pytest
from helpers import (
    FakeAsyncStream,
    FakeSearchBackend,
    anthropic_response,
    anthropic_text_block,
    anthropic_tool_block,
    fake_anthropic_client,
    fake_google_client,
    fake_openai_client,
    fast_limiter,
    google_function_call,
    google_response,
    openai_chunk,
    openai_tool_fragment,
)
from google.genai import types

from chat_studio.clients.anthropic import AnthropicAdapter
from chat_studio.clients.google import GoogleAdapter
from chat_studio.clients.openai_compat import OpenAIAdapter, OpenRouterAdapter
from chat_studio.config import Settings
from chat_studio.errors import ProviderError, UnsupportedProvider
from chat_studio.models.llm import ChatMessage, TextDelta, ToolCallEvent, ToolLoopState, ToolResultEvent
from chat_studio.orchestration.anthropic_tools import AnthropicToolOrchestrator
from chat_studio.orchestration.factory import create_orchestrator
from chat_studio.orchestration.google_tools import GoogleToolOrchestrator
from chat_studio.orchestration.openai_tools import OpenAIToolOrchestrator, _PendingCall, assemble_calls
from chat_studio.tools import ToolExecutor, ToolsRegistry
from chat_studio.tools.web_search import SearchResult

HISTORY = [
    ChatMessage(role="user", content="Hi"),
    ChatMessage(role="assistant", content="Hello!"),
    ChatMessage(role="user", content="What happened today in X?"),
]

FULL_LOOP = [
    ToolLoopState.AWAITING_MODEL,
    ToolLoopState.MODEL_TEXT,
    ToolLoopState.MODEL_TOOL_CALL,
    ToolLoopState.EXECUTING_TOOLS,
    ToolLoopState.RESUMING_MODEL,
    ToolLoopState.DONE,
]


@pytest.fixture
def search_backend():
    """Search backend with a single canned hit."""
    return FakeSearchBackend(results=[SearchResult(title="X news", url="https://x.test", content="Big day", score=0.9)])


@pytest.fixture
def registry(search_backend):
    return ToolsRegistry(search_backend)


@pytest.fixture
def tools(registry):
    return registry.available_tools(web_search_enabled=True)


def make_orchestrator(orchestrator_class, adapter_class, client, registry):
    adapter = adapter_class(settings=Settings(), rate_limiter=fast_limiter(), client_factory=lambda key: client)
    return orchestrator_class(adapter, ToolExecutor(registry))


async def collect(stream) -> list:
    return [event async for event in stream]


class TestAssembleCalls:
    """Tests for joining streamed argument fragments."""

    def test_fragments_are_parsed_after_joining(self):
        """Test that argument fragments parse only once concatenated."""
        calls = assemble_calls({0: _PendingCall(id="call_a", name="web_search", arguments='{"query": "x"}')})
        assert calls[0].id == "call_a"
        assert calls[0].args == {"query": "x"}

    def test_missing_id_gets_index_id(self):
        """Test that calls without ids get a positional id."""
        calls = assemble_calls({1: _PendingCall(name="web_search"), 0: _PendingCall(name="web_search")})
        assert [call.id for call in calls] == ["call_0", "call_1"]
        assert calls[0].args == {}

    def test_malformed_arguments_become_empty(self):
        """Test that unparseable JSON arguments become an empty object."""
        calls = assemble_calls({0: _PendingCall(id="c", name="web_search", arguments='{"query": ')})
        assert calls[0].args == {}


class TestOpenAIToolOrchestrator:
    """Tests for the OpenAI-shaped tool loop."""

    @pytest.mark.asyncio
    async def test_text_only_response(self, registry, tools, search_backend):
        """Test that a text-only reply streams and terminates without tools."""
        client = fake_openai_client(FakeAsyncStream([openai_chunk("Hel"), openai_chunk("lo")]))
        orchestrator = make_orchestrator(OpenAIToolOrchestrator, OpenAIAdapter, client, registry)

        events = await collect(orchestrator.stream("key", "gpt-4.1", HISTORY, tools, system="Persona"))

        assert events == [TextDelta(delta="Hel"), TextDelta(delta="lo")]
        assert orchestrator.states == [ToolLoopState.AWAITING_MODEL, ToolLoopState.MODEL_TEXT, ToolLoopState.DONE]
        assert client.chat.completions.create.await_count == 1
        assert client.chat.completions.create.call_args.kwargs["tools"][0]["function"]["name"] == "web_search"
        assert search_backend.queries == []

    @pytest.mark.asyncio
    async def test_single_tool_round_trip(self, registry, tools, search_backend):
        """Test fragment assembly, execution and a single tools-disabled follow-up."""
        first = FakeAsyncStream(
            [
                openai_chunk("Let me search. "),
                openai_chunk(tool_calls=[openai_tool_fragment(0, id="call_abc", name="web_search", arguments='{"que')]),
                openai_chunk(tool_calls=[openai_tool_fragment(0, arguments='ry": "today in X"}')]),
            ]
        )
        second = FakeAsyncStream([openai_chunk("A big day "), openai_chunk("in X.")])
        client = fake_openai_client(first, second)
        orchestrator = make_orchestrator(OpenAIToolOrchestrator, OpenAIAdapter, client, registry)

        events = await collect(orchestrator.stream("key", "gpt-4.1", HISTORY, tools, system="Persona"))

        assert [type(event) for event in events] == [TextDelta, ToolCallEvent, ToolResultEvent, TextDelta, TextDelta]
        assert events[1].call.args == {"query": "today in X"}
        assert events[2].result.tool_call_id == "call_abc"
        assert search_backend.queries == [("today in X", 5)]
        assert orchestrator.states == FULL_LOOP
        assert first.closed and second.closed

        assert client.chat.completions.create.await_count == 2
        follow_up = client.chat.completions.create.call_args_list[1].kwargs
        assert follow_up["tool_choice"] == "none"
        assistant, tool_message = follow_up["messages"][-2:]
        assert assistant["role"] == "assistant"
        assert assistant["content"] == "Let me search. "
        assert assistant["tool_calls"][0]["id"] == "call_abc"
        assert json.loads(assistant["tool_calls"][0]["function"]["arguments"]) == {"query": "today in X"}
        assert tool_message["role"] == "tool"
        assert tool_message["tool_call_id"] == "call_abc"
        assert json.loads(tool_message["content"])[0]["title"] == "X news"

    @pytest.mark.asyncio
    async def test_batch_runs_each_call_once_and_resumes_once(self, registry, tools, search_backend):
        """Test that N calls mean N executions and exactly one follow-up request."""
        first = FakeAsyncStream(
            [
                openai_chunk(tool_calls=[openai_tool_fragment(0, name="web_search", arguments='{"query": "a"}')]),
                openai_chunk(tool_calls=[openai_tool_fragment(1, name="web_search", arguments='{"query": "b"}')]),
                openai_chunk(tool_calls=[openai_tool_fragment(2, name="web_search", arguments='{"query": "c"}')]),
            ]
        )
        # The follow-up asks for yet another tool; it must be ignored
        second = FakeAsyncStream(
            [
                openai_chunk(tool_calls=[openai_tool_fragment(0, name="web_search", arguments='{"query": "d"}')]),
                openai_chunk("Summary."),
            ]
        )
        client = fake_openai_client(first, second)
        orchestrator = make_orchestrator(OpenAIToolOrchestrator, OpenAIAdapter, client, registry)

        result = await orchestrator.generate("key", "gpt-4.1", HISTORY, tools)

        assert [query for query, _ in search_backend.queries] == ["a", "b", "c"]
        assert client.chat.completions.create.await_count == 2
        assert [call.id for call in result.tool_calls] == ["call_0", "call_1", "call_2"]
        assert [tool_result.tool_call_id for tool_result in result.tool_results] == ["call_0", "call_1", "call_2"]
        assert result.text == "Summary."
        assert result.states[-1] == ToolLoopState.DONE
        assert ToolLoopState.MODEL_TEXT not in result.states

    @pytest.mark.asyncio
    async def test_tool_failure_is_fed_back(self):
        """Test that a failing search is returned to the model as text."""
        backend = FakeSearchBackend(error=RuntimeError("search down"))
        registry = ToolsRegistry(backend)
        first = FakeAsyncStream(
            [openai_chunk(tool_calls=[openai_tool_fragment(0, id="c1", name="web_search", arguments='{"query": "x"}')])]
        )
        client = fake_openai_client(first, FakeAsyncStream([openai_chunk("Search is unavailable.")]))
        orchestrator = make_orchestrator(OpenAIToolOrchestrator, OpenAIAdapter, client, registry)

        result = await orchestrator.generate("key", "gpt-4.1", HISTORY, registry.available_tools(True))

        assert result.tool_results[0].is_error is True
        tool_message = client.chat.completions.create.call_args_list[1].kwargs["messages"][-1]
        assert "search down" in tool_message["content"]
        assert result.text == "Search is unavailable."

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, registry, tools):
        """Test that an API failure surfaces as ProviderError."""
        client = fake_openai_client(httpx.ConnectError("refused"))
        orchestrator = make_orchestrator(OpenAIToolOrchestrator, OpenRouterAdapter, client, registry)

        with pytest.raises(ProviderError, match="openrouter API error"):
            await collect(orchestrator.stream("key", "deepseek/deepseek-r1-0528:free", HISTORY, tools))


class TestAnthropicToolOrchestrator:
    """Tests for the Anthropic tool loop."""

    @pytest.mark.asyncio
    async def test_text_only_response(self, registry, tools):
        """Test that a text-only reply is emitted as one chunk."""
        response = anthropic_response(anthropic_text_block("Hello "), anthropic_text_block("there"))
        client = fake_anthropic_client(response)
        orchestrator = make_orchestrator(AnthropicToolOrchestrator, AnthropicAdapter, client, registry)

        events = await collect(orchestrator.stream("key", "claude-sonnet-4-20250514", HISTORY, tools))

        assert events == [TextDelta(delta="Hello there")]
        assert client.messages.create.await_count == 1
        params = client.messages.create.call_args.kwargs
        assert params["tools"][0]["name"] == "web_search"
        assert params["tools"][0]["input_schema"]["required"] == ["query"]

    @pytest.mark.asyncio
    async def test_tool_use_round_trip(self, registry, tools, search_backend):
        """Test tool_use blocks and a user-role tool_result reply."""
        client = fake_anthropic_client(
            anthropic_response(
                anthropic_text_block("Searching."),
                anthropic_tool_block("toolu_1", "web_search", {"query": "today in X"}),
            ),
            anthropic_response(anthropic_text_block("It was a big day.")),
        )
        orchestrator = make_orchestrator(AnthropicToolOrchestrator, AnthropicAdapter, client, registry)

        events = await collect(orchestrator.stream("key", "claude-sonnet-4-20250514", HISTORY, tools, system="Persona"))

        assert [type(event) for event in events] == [TextDelta, ToolCallEvent, ToolResultEvent, TextDelta]
        assert events[-1].delta == "It was a big day."
        assert orchestrator.states == FULL_LOOP
        assert search_backend.queries == [("today in X", 5)]

        follow_up = client.messages.create.call_args_list[1].kwargs
        assert follow_up["tool_choice"] == {"type": "none"}
        assert follow_up["system"] == "Persona"
        assistant, user = follow_up["messages"][-2:]
        assert assistant == {
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Searching."},
                {"type": "tool_use", "id": "toolu_1", "name": "web_search", "input": {"query": "today in X"}},
            ],
        }
        assert user["role"] == "user"
        assert user["content"][0]["type"] == "tool_result"
        assert user["content"][0]["tool_use_id"] == "toolu_1"
        assert user["content"][0]["is_error"] is False

    @pytest.mark.asyncio
    async def test_follow_up_tool_use_is_dropped(self, registry, tools, search_backend):
        """Test that tool calls in the follow-up are not executed."""
        client = fake_anthropic_client(
            anthropic_response(anthropic_tool_block("toolu_1", "web_search", {"query": "a"})),
            anthropic_response(anthropic_tool_block("toolu_2", "web_search", {"query": "b"})),
        )
        orchestrator = make_orchestrator(AnthropicToolOrchestrator, AnthropicAdapter, client, registry)

        result = await orchestrator.generate("key", "claude-sonnet-4-20250514", HISTORY, tools)

        assert search_backend.queries == [("a", 5)]
        assert client.messages.create.await_count == 2
        assert result.text == ""
        assert result.states[-1] == ToolLoopState.DONE


class TestGoogleToolOrchestrator:
    """Tests for the Gemini function-calling loop."""

    @pytest.mark.asyncio
    async def test_history_split_and_text_reply(self, registry, tools):
        """Test that history and final turn are sent separately."""
        client = fake_google_client(chat_responses=[google_response("Hello!")])
        orchestrator = make_orchestrator(GoogleToolOrchestrator, GoogleAdapter, client, registry)

        events = await collect(orchestrator.stream("key", "gemini-2.5-flash", HISTORY, tools, system="Persona"))

        assert events == [TextDelta(delta="Hello!")]
        create_kwargs = client.aio.chats.create.call_args.kwargs
        assert [content.role for content in create_kwargs["history"]] == ["user", "model"]
        declarations = create_kwargs["config"].tools[0].function_declarations
        assert declarations[0].name == "web_search"
        sent_parts = client.chat.send_message.call_args_list[0].args[0]
        assert sent_parts[0].text == "What happened today in X?"

    @pytest.mark.asyncio
    async def test_function_call_round_trip(self, registry, tools, search_backend):
        """Test that function calls are answered with function-response parts."""
        client = fake_google_client(
            chat_responses=[
                google_response(function_calls=[google_function_call("web_search", {"query": "today in X"})]),
                google_response("A big day."),
            ]
        )
        orchestrator = make_orchestrator(GoogleToolOrchestrator, GoogleAdapter, client, registry)

        events = await collect(orchestrator.stream("key", "gemini-2.5-flash", HISTORY, tools))

        assert [type(event) for event in events] == [ToolCallEvent, ToolResultEvent, TextDelta]
        assert events[0].call.id is None
        assert search_backend.queries == [("today in X", 5)]
        assert orchestrator.states == [state for state in FULL_LOOP if state != ToolLoopState.MODEL_TEXT]

        assert client.chat.send_message.await_count == 2
        resume = client.chat.send_message.call_args_list[1]
        part = resume.args[0][0]
        assert part.function_response.name == "web_search"
        assert json.loads(part.function_response.response["result"])[0]["url"] == "https://x.test"
        mode = resume.kwargs["config"].tool_config.function_calling_config.mode
        assert mode == types.FunctionCallingConfigMode.NONE

    @pytest.mark.asyncio
    async def test_results_match_calls_in_order(self, registry, tools, search_backend):
        """Test that several calls are answered positionally, keeping ids when present."""
        client = fake_google_client(
            chat_responses=[
                google_response(
                    function_calls=[
                        google_function_call("web_search", {"query": "a"}, id="fc_1"),
                        google_function_call("web_search", {"query": "b"}),
                    ]
                ),
                google_response("Done."),
            ]
        )
        orchestrator = make_orchestrator(GoogleToolOrchestrator, GoogleAdapter, client, registry)

        result = await orchestrator.generate("key", "gemini-2.5-flash", HISTORY, tools)

        parts = client.chat.send_message.call_args_list[1].args[0]
        assert [part.function_response.id for part in parts] == ["fc_1", None]
        assert [query for query, _ in search_backend.queries] == ["a", "b"]
        assert result.text == "Done."


class TestOrchestratorFactory:
    """Tests for orchestrator selection."""

    def test_openai_shaped_providers_share_a_loop(self, registry):
        """Test that OpenAI and OpenRouter use the same tool protocol."""
        executor = ToolExecutor(registry)
        for adapter_class in (OpenAIAdapter, OpenRouterAdapter):
            adapter = adapter_class(settings=Settings(), rate_limiter=fast_limiter())
            assert isinstance(create_orchestrator(adapter, executor), OpenAIToolOrchestrator)

    def test_bespoke_providers(self, registry):
        """Test that Anthropic and Google get their own loops."""
        executor = ToolExecutor(registry)
        anthropic = AnthropicAdapter(settings=Settings(), rate_limiter=fast_limiter())
        google = GoogleAdapter(settings=Settings(), rate_limiter=fast_limiter())
        assert isinstance(create_orchestrator(anthropic, executor), AnthropicToolOrchestrator)
        assert isinstance(create_orchestrator(google, executor), GoogleToolOrchestrator)

    def test_unsupported_provider(self, registry):
        """Test that an adapter for an unknown provider is rejected."""
        adapter = OpenAIAdapter(settings=Settings(), rate_limiter=fast_limiter())
        adapter.provider = "mistral"
        with pytest.raises(UnsupportedProvider):
            create_orchestrator(adapter, ToolExecutor(registry))
