"""Tool loop for Anthropic's Messages API."""

from collections.abc import AsyncIterator, Sequence
from typing import Any

from chat_studio.clients.anthropic import AnthropicAdapter, text_of
from chat_studio.clients.base import split_system
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


def format_tools(tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
    """Convert tool definitions to Anthropic tool specs."""
    return [
        {"name": tool.name, "description": tool.description, "input_schema": tool.get_json_schema()}
        for tool in tools
    ]


def content_blocks(content: list[Any]) -> list[dict[str, Any]]:
    """Re-encode response content blocks so they can be sent back as an assistant turn."""
    blocks: list[dict[str, Any]] = []
    for block in content:
        if block.type == "text":
            blocks.append({"type": "text", "text": block.text})
        elif block.type == "tool_use":
            blocks.append({"type": "tool_use", "id": block.id, "name": block.name, "input": block.input})
    return blocks


class AnthropicToolOrchestrator(ToolOrchestrator):
    """Runs the Anthropic tool protocol.

    Tool calls come back as complete ``tool_use`` blocks in a non-streaming
    response, and results go back as ``tool_result`` blocks inside a single user
    message. Both requests are non-streaming; each response's text is emitted as
    one chunk.
    """

    adapter: AnthropicAdapter

    async def _create(self, client: Any, params: dict[str, Any]) -> Any:
        await self.adapter.throttle()
        return await client.messages.create(**params)

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
        wire_messages = self.adapter.format_messages(turns)
        wire_tools = format_tools(tools)
        logger.debug(
            f"Requesting anthropic tool completion for {model_id} "
            f"with {len(turns)} messages and {len(wire_tools)} tools"
        )

        self._transition(ToolLoopState.AWAITING_MODEL)
        with self.adapter.translate_errors():
            extra = {"tools": wire_tools} if wire_tools else {}
            response = await self._create(
                client, self.adapter.request_params(model_id, wire_messages, system, temperature, **extra)
            )

            text = text_of(response.content)
            if text:
                self._transition(ToolLoopState.MODEL_TEXT)
                yield TextDelta(delta=text)

            calls = [
                ToolCall(id=block.id, name=block.name, args=dict(block.input or {}))
                for block in response.content
                if block.type == "tool_use"
            ]
            if not calls:
                self._transition(ToolLoopState.DONE)
                return

            self._transition(ToolLoopState.MODEL_TOOL_CALL)
            for call in calls:
                yield ToolCallEvent(call=call)

            tool_results: list[dict[str, Any]] = []
            async for result in self._execute_batch(calls):
                tool_results.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": result.tool_call_id,
                        "content": result.content,
                        "is_error": result.is_error,
                    }
                )
                yield ToolResultEvent(result=result)

            self._transition(ToolLoopState.RESUMING_MODEL)
            wire_messages = [
                *wire_messages,
                {"role": "assistant", "content": content_blocks(response.content)},
                {"role": "user", "content": tool_results},
            ]
            follow_up = await self._create(
                client,
                self.adapter.request_params(
                    model_id, wire_messages, system, temperature, tools=wire_tools, tool_choice={"type": "none"}
                ),
            )

            dropped = sum(1 for block in follow_up.content if block.type == "tool_use")
            if dropped:
                logger.warning(f"Dropping {dropped} tool call(s) requested after the tool round trip")

            text = text_of(follow_up.content)
            if text:
                yield TextDelta(delta=text)

        self._transition(ToolLoopState.DONE)
