"""HTTP client used by the NiceGUI page to talk to the relay API."""

import logging
import os
from collections.abc import Callable
from typing import Any

import httpx

from chatrelay.models.schemas import KnowledgeFile, Settings, SettingsUpdate

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")


class ChatApiError(Exception):
    """Raised when the relay API answers with an error."""

    pass


def error_message(response: httpx.Response) -> str:
    """Pull the readable message out of an error response.

    Handles both ``{"error": ...}`` (chat proxy) and ``{"detail": ...}``
    (validation and upload errors).
    """
    fallback = f"HTTP error! status: {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        return fallback
    if not isinstance(data, dict):
        return fallback
    detail = data.get("error") or data.get("detail")
    if isinstance(detail, list) and detail and isinstance(detail[0], dict):
        # FastAPI validation errors: report the first one
        detail = detail[0].get("msg")
    if isinstance(detail, str) and detail:
        return detail
    return fallback


def _client(
    base_url: str, transport: httpx.AsyncBaseTransport | None, timeout: float | None
) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)


async def stream_chat_response(
    payload: dict[str, Any],
    on_chunk: Callable[[str], None],
    on_complete: Callable[[], None],
    on_error: Callable[[str], None],
    base_url: str = API_BASE_URL,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Consume the plain-text stream from /api/chat.

    Exactly one of ``on_complete`` or ``on_error`` is called.
    """
    async with _client(base_url, transport, timeout=120.0) as client:
        try:
            async with client.stream("POST", "/api/chat", json=payload) as response:
                if response.is_error:
                    await response.aread()
                    on_error(error_message(response))
                    return
                if "text/plain" not in response.headers.get("content-type", ""):
                    on_error("Unexpected response format from server")
                    return
                async for text in response.aiter_text():
                    if text:
                        on_chunk(text)
        except httpx.RequestError as e:
            logger.error(f"Chat stream failed: {e}")
            on_error(f"Connection failed: {e}")
            return
    on_complete()


async def sync_settings(
    patch: SettingsUpdate,
    base_url: str = API_BASE_URL,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Settings | None:
    """Mirror a settings change on the server.

    Best effort: failures are logged and ignored.

    Returns:
        The merged server settings, or None if the sync failed.
    """
    body = patch.model_dump(mode="json", by_alias=True, exclude_unset=True)
    async with _client(base_url, transport, timeout=10.0) as client:
        try:
            response = await client.post("/api/settings", json=body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Settings sync failed: {e}")
            return None
    return Settings.model_validate(response.json()["data"])


async def fetch_settings(
    base_url: str = API_BASE_URL,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Settings:
    """Pull the shared settings from the server.

    Raises:
        ChatApiError: If the server answers with an error.
        httpx.RequestError: If the server cannot be reached.
    """
    async with _client(base_url, transport, timeout=10.0) as client:
        response = await client.get("/api/settings")
    if response.is_error:
        raise ChatApiError(error_message(response))
    return Settings.model_validate(response.json()["data"])


async def upload_knowledge_file(
    filename: str,
    content: bytes,
    base_url: str = API_BASE_URL,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[KnowledgeFile, str | None]:
    """Upload a knowledge file for server-side text extraction.

    Returns:
        The stored file record and an optional warning.

    Raises:
        ChatApiError: If the server rejects the file.
    """
    async with _client(base_url, transport, timeout=60.0) as client:
        response = await client.post(
            "/api/knowledge/files",
            files={"file": (filename, content)},
        )
    if response.is_error:
        raise ChatApiError(error_message(response))
    data = response.json()
    return KnowledgeFile.model_validate(data["file"]), data.get("warning")
