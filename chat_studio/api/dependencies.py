"""Shared service instances and request-scoped values for the API routes."""

from fastapi import Header, Request

from chat_studio.models.ai_models import PROVIDER_HEADER_KEYS
from chat_studio.orchestration.pipeline import ChatPipeline
from chat_studio.services.chat import ChatService
from chat_studio.services.message_store import InMemoryMessageStore
from chat_studio.services.titles import TitleGenerator

_message_store: InMemoryMessageStore | None = None
_chat_pipeline: ChatPipeline | None = None
_title_generator: TitleGenerator | None = None
_chat_service: ChatService | None = None


def get_message_store() -> InMemoryMessageStore:
    """Get or create the process-wide message store."""
    global _message_store
    if _message_store is None:
        _message_store = InMemoryMessageStore()
    return _message_store


def get_chat_pipeline() -> ChatPipeline:
    """Get or create the process-wide chat pipeline."""
    global _chat_pipeline
    if _chat_pipeline is None:
        _chat_pipeline = ChatPipeline()
    return _chat_pipeline


def get_title_generator() -> TitleGenerator:
    """Get or create the process-wide title generator."""
    global _title_generator
    if _title_generator is None:
        _title_generator = TitleGenerator()
    return _title_generator


def get_chat_service() -> ChatService:
    """Get or create the process-wide chat service."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService(get_message_store(), get_chat_pipeline(), get_title_generator())
    return _chat_service


def get_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Caller identity; None for anonymous callers."""
    return x_user_id or None


def get_user_keys(request: Request) -> dict[str, str | None]:
    """Caller-supplied API keys from the per-provider headers."""
    return {provider: request.headers.get(header) or None for provider, header in PROVIDER_HEADER_KEYS.items()}


async def shutdown_services() -> None:
    """Stop in-flight replies if the chat service was ever created."""
    if _chat_service is not None:
        await _chat_service.shutdown()
