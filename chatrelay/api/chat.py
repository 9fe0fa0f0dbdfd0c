"""Chat proxy endpoint.

Forwards the browser's conversation to the configured upstream API and
re-streams the answer as plain text.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from chatrelay.models.schemas import ChatRequest, ErrorResponse
from chatrelay.relay.errors import RelayError
from chatrelay.relay.upstream import ChatRelay, get_chat_relay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

CHAT_PATH = "/api/chat"


@router.post(
    "/chat",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"text/plain": {}}, "description": "Streamed answer text"},
        400: {"model": ErrorResponse, "description": "Missing or invalid credentials"},
        500: {"model": ErrorResponse, "description": "Unreadable request or proxy failure"},
    },
)
async def chat(
    request: ChatRequest,
    relay: ChatRelay = Depends(get_chat_relay),
) -> Response:
    """Relay a conversation and stream the answer.

    Returns a ``text/plain`` body carrying only the generated text, plus
    debug headers (prompt length, estimated tokens, knowledge file count,
    image flag).

    Raises:
        400: Missing API key, missing or malformed base URL.
        4xx/5xx: Upstream failure, with the upstream status code.
        500: Unreadable request body, empty upstream body or any other
            error, with the underlying message in ``details``.
    """
    try:
        stream = await relay.open_stream(request)
    except RelayError:
        raise
    except Exception as e:
        logger.exception("Chat API error")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal Server Error", details=str(e)).model_dump(),
        )

    return StreamingResponse(
        stream.iter_bytes(),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache", **stream.stats.as_headers()},
    )
