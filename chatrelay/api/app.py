"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
error handlers and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatrelay import __version__
from chatrelay.api.chat import CHAT_PATH
from chatrelay.api.chat import router as chat_router
from chatrelay.api.knowledge import router as knowledge_router
from chatrelay.api.settings import router as settings_router
from chatrelay.models.schemas import ErrorResponse
from chatrelay.relay.errors import RelayError
from chatrelay.store.settings_store import SettingsConflictError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    # Startup
    logger.info("Starting chat relay API...")
    yield
    # Shutdown
    logger.info("Shutting down chat relay API...")


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Answer a relay failure with ``{"error": ...}`` and its status code."""
    logger.warning(f"Chat request rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(exclude_none=True),
    )


async def settings_conflict_handler(request: Request, exc: SettingsConflictError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"success": False, "error": str(exc), "revision": exc.current},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report unreadable chat payloads like any other proxy failure.

    Bodies on ``/api/chat`` that are not valid JSON, or do not fit the
    request schema, get a 500 with the parser message in ``details``.
    Other routes keep FastAPI's 422 response.
    """
    if request.url.path != CHAT_PATH:
        return await request_validation_exception_handler(request, exc)
    logger.warning(f"Unreadable chat request: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="Internal Server Error", details=str(exc)).model_dump(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Chat Relay API",
        description=(
            "Proxy for OpenAI-compatible chat-completions APIs. "
            "Re-streams answers as plain text, composes the system prompt with "
            "knowledge-base attachments, and mirrors user settings on the server."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.add_exception_handler(RelayError, relay_error_handler)
    application.add_exception_handler(SettingsConflictError, settings_conflict_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)

    application.include_router(chat_router)
    application.include_router(settings_router)
    application.include_router(knowledge_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "chat-relay"}

    return application


app = create_app()
