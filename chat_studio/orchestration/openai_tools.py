"""Tool loop for OpenAI-shaped providers (OpenAI and OpenRouter)."""

import json
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from chat_studio.clients.base import split_system
from chat_studio.clients.openai_compat import OpenAICompatibleAdapter
from chat_studio.models.llm import (
    ChatMessage,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolCallEvent,
    ToolLoopState,
    ToolResultEvent,
)
from chat_studio.orchestration.base import ToolOrchestrator
from chat_studio.tools.base import ToolDefinition
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _PendingCall:
    """A tool call whose pieces are still arriving across stream chunks."""

    id: str | None = None
    name: str = ""
    arguments: str = ""


def format_tools(tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
    """Convert tool definitions to chat completion function tools."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.get_json_schema(),
            },
        }
        for tool in tools
    ]


def assemble_calls(pending: dict[int, _PendingCall]) -> list[ToolCall]:
    """Parse fully accumulated argument strings into tool calls, ordered by index.

    Calls without an id get a synthetic ``call_<index>`` so results can still be
    correlated on resumption. Unparseable arguments become an empty object and
    are rejected later by argument validation.
    """
    calls: list[ToolCall] = []
    for index in sorted(pending):
        entry = pending[index]
        try:
            args = json.loads(entry.arguments) if entry.arguments else {}
        except json.JSONDecodeError:
            logger.warning(f"Could not parse arguments for tool call {entry.name}: {entry.arguments!r}")
            args = {}
        if not isinstance(args, dict):
            args = {}
        calls.append(ToolCall(id=entry.id or f"call_{index}", name=entry.name, args=args))
    return calls


class OpenAIToolOrchestrator(ToolOrchestrator):
    """Streams chat completions, assembling tool-call arguments from fragments.

    Tool calls arrive as partial argument strings keyed by index; they are only
    parsed once the stream has ended. The follow-up request resubmits the
    conversation plus the assistant's tool-call record and one ``tool`` message
    per result, with ``tool_choice="none"``.
    """

    adapter: OpenAICompatibleAdapter

    async def _stream_completion(
        self, client: Any, params: dict[str, Any], pending: dict[int, _PendingCall] | None
    ) -> AsyncIterator[str]:
        """Yield text deltas; accumulate tool-call fragments into ``pending`` when given."""
        await self.adapter.throttle()
        stream = await client.chat.completions.create(**params)
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta

                for fragment in delta.tool_calls or []:
                    if pending is None:
                        logger.warning(f"Ignoring tool call fragment in follow-up response (index {fragment.index})")
                        continue
                    entry = pending.setdefault(fragment.index, _PendingCall())
                    if fragment.id:
                        entry.id = fragment.id
                    if fragment.function is not None:
                        if fragment.function.name:
                            entry.name = fragment.function.name
                        if fragment.function.arguments:
                            entry.arguments += fragment.function.arguments

                if delta.content:
                    yield delta.content
        finally:
            await stream.close()

    async def stream(
        self,
        api_key: str,
        model_id: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamEvent]:
        system, turns = split_system(messages, system)
        client = self.adapter.client(api_key)
        wire_messages = self.adapter.format_messages(turns, system)
        wire_tools = format_tools(tools)
        logger.debug(
            f"Opening {self.adapter.provider} tool stream for {model_id} "
            f"with {len(turns)} messages and {len(wire_tools)} tools"
        )

        self._transition(ToolLoopState.AWAITING_MODEL)
        pending: dict[int, _PendingCall] = {}
        text_parts: list[str] = []

        with self.adapter.translate_errors():
            params = self.adapter.request_params(
                model_id, wire_messages, temperature, stream=True, **({"tools": wire_tools} if wire_tools else {})
            )
            async with aclosing(self._stream_completion(client, params, pending)) as deltas:
                async for delta in deltas:
                    if not text_parts:
                        self._transition(ToolLoopState.MODEL_TEXT)
                    text_parts.append(delta)
                    yield TextDelta(delta=delta)

            if not pending:
                self._transition(ToolLoopState.DONE)
                return

            self._transition(ToolLoopState.MODEL_TOOL_CALL)
            calls = assemble_calls(pending)
            for call in calls:
                yield ToolCallEvent(call=call)

            results = []
            async for result in self._execute_batch(calls):
                results.append(result)
                yield ToolResultEvent(result=result)

            self._transition(ToolLoopState.RESUMING_MODEL)
            wire_messages = [
                *wire_messages,
                {
                    "role": "assistant",
                    "content": "".join(text_parts) or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": json.dumps(call.args)},
                        }
                        for call in calls
                    ],
                },
                *(
                    {"role": "tool", "tool_call_id": call.id, "content": result.content}
                    for call, result in zip(calls, results, strict=True)
                ),
            ]
            params = self.adapter.request_params(
                model_id, wire_messages, temperature, stream=True, tools=wire_tools, tool_choice="none"
            )
            async with aclosing(self._stream_completion(client, params, None)) as deltas:
                async for delta in deltas:
                    yield TextDelta(delta=delta)

        self._transition(ToolLoopState.DONE)
