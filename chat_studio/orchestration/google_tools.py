"""Tool loop for Gemini models via the google-genai chat API."""

from collections.abc import AsyncIterator, Sequence
from typing import Any

from google.genai import types

from chat_studio.clients.base import split_system
from chat_studio.clients.google import GoogleAdapter, text_of
from chat_studio.models.llm import (
    ChatMessage,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolCallEvent,
    ToolLoopState,
    ToolResult,
    ToolResultEvent,
)
from chat_studio.orchestration.base import ToolOrchestrator
from chat_studio.tools.base import ToolDefinition
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)


def format_tools(tools: Sequence[ToolDefinition]) -> list[types.Tool]:
    """Wrap tool definitions as a single Gemini tool of function declarations."""
    if not tools:
        return []
    return [
        types.Tool(
            function_declarations=[
                types.FunctionDeclaration(
                    name=tool.name,
                    description=tool.description,
                    parameters_json_schema=tool.get_json_schema(),
                )
                for tool in tools
            ]
        )
    ]


def function_response_part(result: ToolResult) -> types.Part:
    """Build the function-response part that answers one function call."""
    key = "error" if result.is_error else "result"
    return types.Part(
        function_response=types.FunctionResponse(
            id=result.tool_call_id,
            name=result.name,
            response={key: result.content},
        )
    )


class GoogleToolOrchestrator(ToolOrchestrator):
    """Runs the Gemini function-calling protocol.

    The conversation is split into chat history and a final turn. Function calls
    are read from ``response.function_calls``, and results are sent back as
    function-response parts on the same chat, in call order. Both requests are
    non-streaming; each response's text is emitted as one chunk.
    """

    adapter: GoogleAdapter

    async def _send(self, chat: Any, message: Any, config: types.GenerateContentConfig | None = None) -> Any:
        await self.adapter.throttle()
        return await chat.send_message(message, config=config)

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
        if not turns:
            raise ValueError("Gemini tool loop needs at least one message")

        client = self.adapter.client(api_key)
        contents = self.adapter.format_messages(turns)
        wire_tools = format_tools(tools)
        no_auto_calls = types.AutomaticFunctionCallingConfig(disable=True)
        logger.debug(
            f"Requesting google tool completion for {model_id} "
            f"with {len(turns)} messages and {len(tools)} tools"
        )

        self._transition(ToolLoopState.AWAITING_MODEL)
        with self.adapter.translate_errors():
            chat = client.aio.chats.create(
                model=model_id,
                config=self.adapter.build_config(
                    system, temperature, tools=wire_tools or None, automatic_function_calling=no_auto_calls
                ),
                history=contents[:-1],
            )
            response = await self._send(chat, contents[-1].parts)

            text = text_of(response)
            if text:
                self._transition(ToolLoopState.MODEL_TEXT)
                yield TextDelta(delta=text)

            calls = [
                ToolCall(id=function_call.id, name=function_call.name or "", args=dict(function_call.args or {}))
                for function_call in response.function_calls or []
            ]
            if not calls:
                self._transition(ToolLoopState.DONE)
                return

            self._transition(ToolLoopState.MODEL_TOOL_CALL)
            for call in calls:
                yield ToolCallEvent(call=call)

            # Gemini may omit call ids; responses are matched to calls by position
            parts: list[types.Part] = []
            async for result in self._execute_batch(calls):
                parts.append(function_response_part(result))
                yield ToolResultEvent(result=result)

            self._transition(ToolLoopState.RESUMING_MODEL)
            resume_config = self.adapter.build_config(
                system,
                temperature,
                tools=wire_tools,
                automatic_function_calling=no_auto_calls,
                tool_config=types.ToolConfig(
                    function_calling_config=types.FunctionCallingConfig(mode=types.FunctionCallingConfigMode.NONE)
                ),
            )
            follow_up = await self._send(chat, parts, resume_config)

            if follow_up.function_calls:
                logger.warning(
                    f"Dropping {len(follow_up.function_calls)} tool call(s) requested after the tool round trip"
                )

            text = text_of(follow_up)
            if text:
                yield TextDelta(delta=text)

        self._transition(ToolLoopState.DONE)
