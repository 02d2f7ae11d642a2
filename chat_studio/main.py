"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chat_studio import __version__
from chat_studio.api import endpoints, threads
from chat_studio.api.dependencies import shutdown_services
from chat_studio.config import Settings, get_settings
from chat_studio.errors import (
    ChatStudioError,
    MessageNotFound,
    MissingCredential,
    ThreadNotFound,
    Unauthorized,
    UnknownModel,
    UnsupportedProvider,
)
from chat_studio.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

ERROR_STATUS_CODES: dict[type[ChatStudioError], int] = {
    UnknownModel: 400,
    MissingCredential: 400,
    ThreadNotFound: 404,
    MessageNotFound: 404,
    Unauthorized: 403,
    UnsupportedProvider: 500,
}


async def chat_studio_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render pipeline errors raised before a response starts as JSON."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        500,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({status_code}): {exc}")
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    logger.info(f"Chat Studio API {__version__} starting")
    yield
    await shutdown_services()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Chat Studio",
        description=(
            "Streaming multi-provider chat completions (Gemini, Claude, GPT, OpenRouter) "
            "with optional web search tool calling."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Chat",
                "description": "Stream replies as server-sent events and generate thread titles.",
            },
            {
                "name": "Threads",
                "description": "Persisted threads whose replies stream into stored messages.",
            },
            {
                "name": "Health",
                "description": "Service health monitoring and status checks.",
            },
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_origin],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=endpoints.ALLOWED_HEADERS,
        max_age=endpoints.PREFLIGHT_MAX_AGE,
    )
    app.add_exception_handler(ChatStudioError, chat_studio_error_handler)

    app.include_router(endpoints.router)
    app.include_router(threads.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("chat_studio.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
