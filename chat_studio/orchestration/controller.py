"""Per-message streaming coordinator that persists output as it arrives."""

import asyncio
from collections.abc import Mapping, Sequence
from contextlib import aclosing
from enum import StrEnum

from chat_studio.models.chat import MessagePart, TextPart, ToolCallPart, ToolResultPart
from chat_studio.models.llm import ChatMessage, StreamEvent, TextDelta, ToolCallEvent, ToolResultEvent
from chat_studio.orchestration.pipeline import ChatPipeline
from chat_studio.services.message_store import MessageSink
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

ERROR_PREFIX = "Sorry, I ran into an error: "


class ControllerState(StrEnum):
    """Lifecycle of one controller run."""

    CREATED = "created"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    FAILED = "failed"


class ChatStreamController:
    """Streams one assistant message and persists it delta by delta.

    Every run ends with exactly one finalization of the assistant message, so a
    message is never left incomplete. Failures become the message text instead of
    propagating. An abort finalizes whatever was generated so far as a normal
    completion.
    """

    def __init__(self, pipeline: ChatPipeline, sink: MessageSink):
        self.pipeline = pipeline
        self.sink = sink
        self.state = ControllerState.CREATED
        self.chunk_count = 0
        self._buffer: list[str] = []
        self._parts: list[MessagePart] = []

    @property
    def content(self) -> str:
        return "".join(self._buffer)

    def _set_state(self, state: ControllerState) -> None:
        logger.debug(f"Stream controller {self.state} -> {state}")
        self.state = state

    def _snapshot_parts(self) -> list[MessagePart]:
        return list(self._parts)

    def _tool_parts(self) -> list[MessagePart]:
        return [part for part in self._parts if not isinstance(part, TextPart)]

    def _apply(self, event: StreamEvent) -> None:
        if isinstance(event, TextDelta):
            self._buffer.append(event.delta)
            self.chunk_count += 1
            # Consecutive deltas share one text part; text after a tool part starts a new one
            if self._parts and isinstance(self._parts[-1], TextPart):
                self._parts[-1] = TextPart(text=self._parts[-1].text + event.delta)
            else:
                self._parts.append(TextPart(text=event.delta))
        elif isinstance(event, ToolCallEvent):
            self._parts.append(
                ToolCallPart(tool_call_id=event.call.id, tool_name=event.call.name, args=event.call.args)
            )
        elif isinstance(event, ToolResultEvent):
            self._parts.append(
                ToolResultPart(
                    tool_call_id=event.result.tool_call_id,
                    tool_name=event.result.name,
                    result=event.result.content,
                    is_error=event.result.is_error,
                )
            )

    async def run(
        self,
        thread_id: str,
        assistant_message_id: str,
        message_history: Sequence[ChatMessage],
        model_name: str,
        user_api_key: str | None = None,
        *,
        user_keys: Mapping[str, str | None] | None = None,
        web_search_enabled: bool = False,
        temperature: float | None = None,
        abort_event: asyncio.Event | None = None,
    ) -> None:
        """Generate the assistant reply for a thread.

        Args:
            thread_id: Thread the message belongs to
            assistant_message_id: Placeholder message to stream into
            message_history: Conversation so far, oldest first
            model_name: Display name from the model catalog
            user_api_key: Caller key for the selected model's provider
            user_keys: Caller keys by provider
            web_search_enabled: Offer the web search tool to the model
            temperature: Sampling temperature override
            abort_event: Set by the caller to stop generation early. It is checked
                before the provider call and between stream events, so a pending
                provider response or tool execution is not interrupted; cancel the
                task running this method to stop those immediately
        """
        if self.state != ControllerState.CREATED:
            raise RuntimeError("A stream controller can only run once")

        if abort_event is not None and abort_event.is_set():
            logger.info(f"Reply {assistant_message_id} aborted before start")
            await self._finalize(assistant_message_id)
            return

        logger.info(f"Generating reply {assistant_message_id} in thread {thread_id} with {model_name}")
        aborted = False
        try:
            prepared = self.pipeline.prepare(model_name, user_api_key, user_keys)
            self._set_state(ControllerState.STREAMING)
            events = self.pipeline.open_stream(prepared, message_history, web_search_enabled, temperature)
            async with aclosing(events):
                async for event in events:
                    if abort_event is not None and abort_event.is_set():
                        aborted = True
                        break
                    self._apply(event)
                    await self.sink.update_content(assistant_message_id, self.content, self._snapshot_parts())
        except asyncio.CancelledError:
            logger.info(f"Reply {assistant_message_id} cancelled after {self.chunk_count} chunk(s)")
            await self._finalize(assistant_message_id)
            raise
        except Exception as e:
            logger.error(f"Reply {assistant_message_id} failed: {e}", exc_info=True)
            self._set_state(ControllerState.FAILED)
            await self.sink.finalize_content(assistant_message_id, f"{ERROR_PREFIX}{e}", self._tool_parts())
            return

        if aborted:
            logger.info(f"Reply {assistant_message_id} aborted after {self.chunk_count} chunk(s)")
        await self._finalize(assistant_message_id)

    async def _finalize(self, assistant_message_id: str) -> None:
        await self.sink.finalize_content(assistant_message_id, self.content, self._snapshot_parts())
        self._set_state(ControllerState.FINALIZED)
        logger.info(f"Finalized reply {assistant_message_id} with {self.chunk_count} chunk(s)")
