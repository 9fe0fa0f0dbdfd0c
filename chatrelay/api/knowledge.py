"""Knowledge-base endpoints.

Handles file upload, validation, text extraction and storage in the
shared settings, plus reference links.
"""

import logging
import uuid
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status

from chatrelay.knowledge.parser import (
    MAX_FILE_SIZE,
    SUPPORTED_EXTENSIONS,
    KnowledgeParseError,
    build_knowledge_file,
    file_extension,
)
from chatrelay.models.schemas import (
    KnowledgeUploadResponse,
    KnowledgeUrl,
    KnowledgeUrlCreate,
    SettingsResponse,
)
from chatrelay.store.settings_store import SettingsStore, get_settings_store, now_ms

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])

# 10MB limit matches the parser constant
MAX_UPLOAD_SIZE = MAX_FILE_SIZE


def _validate_file_extension(filename: str | None) -> str:
    """Validate that the file has a supported extension.

    Raises:
        HTTPException: 400 if the name is missing or the type is unsupported.
    """
    if not filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filename is required",
        )

    if file_extension(filename) not in SUPPORTED_EXTENSIONS:
        supported = ", ".join(f".{ext}" for ext in sorted(SUPPORTED_EXTENSIONS))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type. Supported formats: {supported}",
        )

    return filename


async def _read_and_validate_size(file: UploadFile) -> bytes:
    """Read file content and validate size.

    Raises:
        HTTPException: 413 if file exceeds size limit.
    """
    content = await file.read()

    if len(content) > MAX_UPLOAD_SIZE:
        size_mb = len(content) / (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail=f"File size ({size_mb:.1f}MB) exceeds maximum allowed (10MB)",
        )

    return content


@router.post("/files", response_model=KnowledgeUploadResponse)
async def upload_knowledge_file(
    file: UploadFile,
    store: SettingsStore = Depends(get_settings_store),
) -> KnowledgeUploadResponse:
    """Upload a knowledge file and attach it to the shared settings.

    Raises:
        400: Unsupported type, empty file, invalid JSON or corrupt PDF.
        413: File exceeds 10MB limit.
    """
    filename = _validate_file_extension(file.filename)
    content = await _read_and_validate_size(file)

    try:
        knowledge_file, warning = build_knowledge_file(filename, content, now_ms())
    except KnowledgeParseError as e:
        logger.warning(f"Knowledge parse error for {filename}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    store.add_knowledge_file(knowledge_file)

    return KnowledgeUploadResponse(file=knowledge_file, warning=warning)


@router.delete("/files/{file_id}", response_model=SettingsResponse)
async def delete_knowledge_file(
    file_id: str,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingsResponse:
    if not store.remove_knowledge_file(file_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Knowledge file not found")
    return SettingsResponse(message="Knowledge file removed", data=store.get())


@router.post("/urls", response_model=SettingsResponse)
async def add_knowledge_url(
    payload: KnowledgeUrlCreate,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingsResponse:
    """Attach a reference link to the knowledge base.

    The link is listed in the system prompt; its page is not fetched.
    """
    url = payload.url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid URL: {url}",
        )

    knowledge_url = KnowledgeUrl(
        id=str(uuid.uuid4()),
        url=url,
        title=(payload.title or "").strip() or parsed.netloc,
        description=payload.description,
        add_time=now_ms(),
    )
    settings = store.add_knowledge_url(knowledge_url)
    return SettingsResponse(message="Knowledge link added", data=settings)


@router.delete("/urls/{url_id}", response_model=SettingsResponse)
async def delete_knowledge_url(
    url_id: str,
    store: SettingsStore = Depends(get_settings_store),
) -> SettingsResponse:
    if not store.remove_knowledge_url(url_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Knowledge link not found")
    return SettingsResponse(message="Knowledge link removed", data=store.get())
