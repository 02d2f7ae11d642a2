"""LLM-related data models and types (provider-agnostic)."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "assistant", "system", "data"]


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(CamelModel):
    """A single turn of conversation history, as handed to a provider adapter."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    role: Role
    content: str = ""


class ToolCall(CamelModel):
    """A structured request from the model to invoke a named tool.

    Not every provider supplies an id; results are then matched positionally.
    """

    id: str | None = None
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResult(CamelModel):
    """Textual outcome of executing a tool call."""

    tool_call_id: str | None = None
    name: str
    content: str
    is_error: bool = False


# Stream events


class TextDelta(CamelModel):
    """One incremental fragment of generated text."""

    type: Literal["text"] = "text"
    delta: str


class ToolCallEvent(CamelModel):
    """The model asked for a tool to be run."""

    type: Literal["tool_call"] = "tool_call"
    call: ToolCall


class ToolResultEvent(CamelModel):
    """A tool finished and its result is about to be fed back to the model."""

    type: Literal["tool_result"] = "tool_result"
    result: ToolResult


StreamEvent = TextDelta | ToolCallEvent | ToolResultEvent


class ToolLoopState(StrEnum):
    """States of the tool-calling loop."""

    AWAITING_MODEL = "awaiting_model"
    MODEL_TEXT = "model_text"
    MODEL_TOOL_CALL = "model_tool_call"
    EXECUTING_TOOLS = "executing_tools"
    RESUMING_MODEL = "resuming_model"
    DONE = "done"


@dataclass
class ToolLoopResult:
    """Result from a non-streaming run of the tool-calling loop."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    states: list[ToolLoopState] = field(default_factory=list)
