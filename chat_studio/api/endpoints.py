"""API endpoints for streaming chat, title generation and health."""

import json
from collections.abc import AsyncIterator
from contextlib import aclosing
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse, Response, StreamingResponse

from chat_studio import __version__
from chat_studio.api.dependencies import get_chat_pipeline, get_title_generator, get_user_keys
from chat_studio.config import get_settings
from chat_studio.errors import ChatStudioError, MissingCredential
from chat_studio.models.ai_models import PROVIDER_HEADER_KEYS
from chat_studio.models.conversation import ChatRequest, CompletionRequest, CompletionResponse, HealthResponse
from chat_studio.orchestration.pipeline import ChatPipeline, PreparedChat
from chat_studio.services.titles import TitleGenerator
from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

ALLOWED_HEADERS = ["Content-Type", *PROVIDER_HEADER_KEYS.values(), "X-User-Id"]
PREFLIGHT_MAX_AGE = 86400


def sse_frame(payload: dict[str, Any]) -> str:
    """Encode one server-sent event."""
    return f"data: {json.dumps(payload)}\n\n"


async def chat_event_stream(pipeline: ChatPipeline, prepared: PreparedChat, request: ChatRequest) -> AsyncIterator[str]:
    """Relay pipeline events as SSE frames, ending with a ``done`` frame.

    Failures after the response has started become an ``error`` frame. A client
    disconnect cancels this generator, which closes the provider stream.
    """
    events = pipeline.open_stream(prepared, request.messages, request.web_search_enabled, request.temperature)
    chunk_count = 0
    try:
        async with aclosing(events):
            async for event in events:
                chunk_count += 1
                yield sse_frame(event.model_dump(mode="json", by_alias=True))
    except Exception as e:
        logger.error(f"Chat stream for {request.model} failed: {e}", exc_info=True)
        yield sse_frame({"type": "error", "message": str(e)})

    logger.info(f"Chat stream for {request.model} finished after {chunk_count} event(s)")
    yield sse_frame({"type": "done"})


@router.post("/api/chat", tags=["Chat"])
async def chat(
    request: ChatRequest,
    user_keys: dict[str, str | None] = Depends(get_user_keys),
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
) -> StreamingResponse:
    """Stream a reply for a message history as server-sent events.

    The model and key are resolved before the response starts, so an unknown
    model or a missing key is reported as a plain 400 error.
    """
    prepared = pipeline.prepare(request.model, request.user_api_key, user_keys)
    return StreamingResponse(
        chat_event_stream(pipeline, prepared, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )


@router.options("/api/chat", tags=["Chat"])
async def chat_preflight() -> Response:
    """Answer bare preflight requests that the CORS middleware does not intercept."""
    return Response(
        status_code=204,
        headers={
            "Access-Control-Allow-Origin": get_settings().client_origin,
            "Access-Control-Allow-Methods": "POST, OPTIONS",
            "Access-Control-Allow-Headers": ", ".join(ALLOWED_HEADERS),
            "Access-Control-Max-Age": str(PREFLIGHT_MAX_AGE),
        },
    )


@router.post("/api/completion", response_model=CompletionResponse, tags=["Chat"])
async def completion(
    request: CompletionRequest,
    x_google_api_key: str | None = Header(default=None),
    title_generator: TitleGenerator = Depends(get_title_generator),
) -> CompletionResponse | JSONResponse:
    """Generate a short title for a message."""
    try:
        title = await title_generator.generate(request.prompt, x_google_api_key)
    except MissingCredential:
        return JSONResponse(
            status_code=400,
            content={"error": "Google API key is required to enable chat title generation."},
        )
    except ChatStudioError as e:
        logger.error(f"Failed to generate title: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to generate title"})

    return CompletionResponse(
        title=title,
        is_title=request.is_title,
        message_id=request.message_id,
        thread_id=request.thread_id,
    )


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
