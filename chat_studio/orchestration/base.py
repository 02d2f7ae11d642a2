"""Tool-calling orchestrator interface and the state machine shared by all providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from chat_studio.clients.base import ProviderAdapter
from chat_studio.models.llm import (
    ChatMessage,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolCallEvent,
    ToolLoopResult,
    ToolLoopState,
    ToolResult,
    ToolResultEvent,
)
from chat_studio.tools.base import ToolDefinition
from chat_studio.tools.executor import ToolExecutor
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)


class ToolOrchestrator(ABC):
    """Drives one model → tools → model round trip for a provider.

    The loop is single-hop: one batch of tool calls is executed and the model is
    resumed exactly once. Tool use is switched off on the resumption request, and
    any tool calls the follow-up still produces are dropped.

    An instance records its state transitions in ``states`` and serves one run.
    """

    def __init__(self, adapter: ProviderAdapter, executor: ToolExecutor):
        self.adapter = adapter
        self.executor = executor
        self.states: list[ToolLoopState] = []

    @property
    def provider(self) -> str:
        return self.adapter.provider

    def _transition(self, state: ToolLoopState) -> None:
        previous = self.states[-1] if self.states else None
        self.states.append(state)
        logger.debug(f"{self.provider} tool loop: {previous} -> {state}")

    async def _execute_batch(self, calls: Sequence[ToolCall]) -> AsyncIterator[ToolResult]:
        """Run every call in order, one at a time, so results line up with calls."""
        self._transition(ToolLoopState.EXECUTING_TOOLS)
        logger.info(f"Executing {len(calls)} tool call(s) for {self.provider}")
        for call in calls:
            yield await self.executor.execute(call)

    @abstractmethod
    def stream(
        self,
        api_key: str,
        model_id: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Run the loop, yielding text deltas and tool events as they happen.

        Raises:
            ProviderError: On transport or API failure
        """

    async def generate(
        self,
        api_key: str,
        model_id: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolDefinition],
        *,
        system: str | None = None,
        temperature: float | None = None,
    ) -> ToolLoopResult:
        """Run the loop to completion and return the collected outcome.

        Raises:
            ProviderError: On transport or API failure
        """
        result = ToolLoopResult(states=self.states)
        text_parts: list[str] = []
        async for event in self.stream(
            api_key, model_id, messages, tools, system=system, temperature=temperature
        ):
            if isinstance(event, TextDelta):
                text_parts.append(event.delta)
            elif isinstance(event, ToolCallEvent):
                result.tool_calls.append(event.call)
            elif isinstance(event, ToolResultEvent):
                result.tool_results.append(event.result)

        result.text = "".join(text_parts)
        return result
