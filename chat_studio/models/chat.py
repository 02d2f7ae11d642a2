"""Persisted thread and message models."""

from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import Field

from chat_studio.models.llm import CamelModel, ChatMessage, Role


def utc_now() -> datetime:
    return datetime.now(UTC)


class TextPart(CamelModel):
    """Generated or typed text."""

    type: Literal["text"] = "text"
    text: str


class ToolCallPart(CamelModel):
    """Rendered record of a tool call made while generating a message."""

    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str | None = None
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(CamelModel):
    """Rendered record of a tool result."""

    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str | None = None
    tool_name: str
    result: str
    is_error: bool = False


MessagePart = Annotated[TextPart | ToolCallPart | ToolResultPart, Field(discriminator="type")]


class Message(CamelModel):
    """A message in a thread.

    At most one assistant message per thread is in flight (``is_complete=False``).
    Once finalized, ``is_complete`` never flips back.
    """

    id: str
    thread_id: str
    role: Role
    content: str = ""
    parts: list[MessagePart] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    is_complete: bool = True
    user_id: str | None = None

    def as_chat_message(self) -> ChatMessage:
        """Strip persistence fields for handing to a provider."""
        return ChatMessage(role=self.role, content=self.content)


class Thread(CamelModel):
    """A conversation thread. ``user_id`` is None for anonymous threads."""

    id: str
    title: str = "New Chat"
    user_id: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_message_at: datetime = Field(default_factory=utc_now)


class MessageSummary(CamelModel):
    """Short generated summary of a message, used for thread navigation."""

    id: str
    thread_id: str
    message_id: str
    content: str
    created_at: datetime = Field(default_factory=utc_now)


class AnonymousMessage(CamelModel):
    """A message kept in a browser's local storage before sign-in."""

    role: Role
    content: str
    parts: list[MessagePart] = Field(default_factory=list)
    created_at: datetime


class AnonymousThread(CamelModel):
    """A locally stored anonymous thread awaiting migration."""

    title: str = "New Chat"
    created_at: datetime
    messages: list[AnonymousMessage] = Field(default_factory=list)
