"""Request and response models for the HTTP API."""

from datetime import datetime

from pydantic import Field

from chat_studio.models.chat import AnonymousThread
from chat_studio.models.llm import CamelModel, ChatMessage


class ChatRequest(CamelModel):
    """Request model for the streaming chat endpoint."""

    messages: list[ChatMessage]
    model: str
    user_api_key: str | None = None
    web_search_enabled: bool = False
    temperature: float | None = None


class CompletionRequest(CamelModel):
    """Request model for title generation."""

    prompt: str
    is_title: bool = False
    message_id: str | None = None
    thread_id: str | None = None


class CompletionResponse(CamelModel):
    """Response model for title generation."""

    title: str
    is_title: bool = False
    message_id: str | None = None
    thread_id: str | None = None


class CreateThreadRequest(CamelModel):
    """Request model for creating a thread."""

    title: str | None = None


class SendMessageRequest(CamelModel):
    """Request model for submitting a message to a persisted thread."""

    content: str
    model: str
    user_api_key: str | None = None
    web_search_enabled: bool = False


class SendMessageResponse(CamelModel):
    """Ids of the stored user message and the in-flight assistant placeholder."""

    user_message_id: str
    assistant_message_id: str


class CancelResponse(CamelModel):
    """Whether an in-flight stream was signalled to stop."""

    cancelled: bool


class DeleteTrailingResponse(CamelModel):
    """Number of messages removed."""

    deleted: int


class MigrationRequest(CamelModel):
    """Anonymous threads to import under the authenticated caller."""

    threads: list[AnonymousThread] = Field(default_factory=list)


class HealthResponse(CamelModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str


class MigrationResponse(CamelModel):
    """Ids of the threads created by a migration, in request order."""

    thread_ids: list[str]
