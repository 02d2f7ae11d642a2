"""API endpoints for persisted threads and messages."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from chat_studio.api.dependencies import get_chat_service, get_message_store, get_user_id, get_user_keys
from chat_studio.errors import Unauthorized
from chat_studio.models.chat import Message, Thread
from chat_studio.models.conversation import (
    CancelResponse,
    CreateThreadRequest,
    DeleteTrailingResponse,
    MigrationRequest,
    MigrationResponse,
    SendMessageRequest,
    SendMessageResponse,
)
from chat_studio.services.chat import ChatService
from chat_studio.services.message_store import InMemoryMessageStore
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Threads"])


@router.post("/threads", response_model=Thread, status_code=201)
async def create_thread(
    request: CreateThreadRequest,
    user_id: str | None = Depends(get_user_id),
    store: InMemoryMessageStore = Depends(get_message_store),
) -> Thread:
    """Create a thread owned by the caller, or an anonymous one."""
    return await store.create_thread(user_id=user_id, title=request.title)


@router.get("/threads", response_model=list[Thread])
async def list_threads(
    user_id: str | None = Depends(get_user_id),
    store: InMemoryMessageStore = Depends(get_message_store),
) -> list[Thread]:
    return await store.list_threads(user_id)


@router.get("/threads/{thread_id}/messages", response_model=list[Message])
async def list_messages(
    thread_id: str,
    user_id: str | None = Depends(get_user_id),
    store: InMemoryMessageStore = Depends(get_message_store),
) -> list[Message]:
    """List a thread's messages, oldest first, including any reply still streaming."""
    await store.get_thread(thread_id, user_id)
    return await store.list_messages(thread_id)


@router.post("/threads/{thread_id}/messages", response_model=SendMessageResponse, status_code=202)
async def send_message(
    thread_id: str,
    request: SendMessageRequest,
    user_id: str | None = Depends(get_user_id),
    user_keys: dict[str, str | None] = Depends(get_user_keys),
    chat_service: ChatService = Depends(get_chat_service),
) -> SendMessageResponse:
    """Store a user message and start generating the reply in the background.

    Poll the thread's messages to follow the reply; it is complete once
    ``isComplete`` is true.
    """
    user_message, assistant_message = await chat_service.send_message(
        thread_id,
        request.content,
        request.model,
        user_api_key=request.user_api_key,
        user_keys=user_keys,
        web_search_enabled=request.web_search_enabled,
        user_id=user_id,
    )
    return SendMessageResponse(user_message_id=user_message.id, assistant_message_id=assistant_message.id)


@router.delete("/threads/{thread_id}/messages", response_model=DeleteTrailingResponse)
async def delete_trailing_messages(
    thread_id: str,
    from_created_at: datetime = Query(alias="from"),
    user_id: str | None = Depends(get_user_id),
    store: InMemoryMessageStore = Depends(get_message_store),
) -> DeleteTrailingResponse:
    """Delete the messages created at or after a timestamp, e.g. before regenerating a reply."""
    await store.get_thread(thread_id, user_id)
    deleted = await store.delete_trailing_messages(thread_id, from_created_at)
    logger.info(f"Deleted {deleted} trailing message(s) from thread {thread_id}")
    return DeleteTrailingResponse(deleted=deleted)


@router.post("/messages/{message_id}/cancel", response_model=CancelResponse)
async def cancel_message(
    message_id: str,
    user_id: str | None = Depends(get_user_id),
    store: InMemoryMessageStore = Depends(get_message_store),
    chat_service: ChatService = Depends(get_chat_service),
) -> CancelResponse:
    """Stop a streaming reply, keeping what was generated so far."""
    message = await store.get_message(message_id)
    await store.get_thread(message.thread_id, user_id)
    return CancelResponse(cancelled=chat_service.cancel(message_id))


@router.post("/threads/migrate", response_model=MigrationResponse)
async def migrate_threads(
    request: MigrationRequest,
    user_id: str | None = Depends(get_user_id),
    store: InMemoryMessageStore = Depends(get_message_store),
) -> MigrationResponse:
    """Import anonymous threads kept by the client under the signed-in caller."""
    if user_id is None:
        raise Unauthorized("Sign in to migrate anonymous threads")
    thread_ids = await store.migrate_anonymous_threads(request.threads, user_id)
    return MigrationResponse(thread_ids=thread_ids)
