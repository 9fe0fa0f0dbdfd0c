"""Pydantic models for API requests, responses and stored records.

Provides type safety, validation, and automatic OpenAPI documentation.
All records serialize with camelCase keys to match the browser storage format.

Models:
    - ChatRequest / ChatMessage: Proxy request payload
    - Settings / SettingsUpdate: Mirrored user settings and partial updates
    - KnowledgeFile / KnowledgeUrl: Knowledge-base attachments
    - StoredMessage / ChatHistory: Client-side conversation records
"""

from chatrelay.models.schemas import (
    ChatHistory,
    ChatMessage,
    ChatRequest,
    ErrorResponse,
    KnowledgeFile,
    KnowledgeUrl,
    Role,
    Settings,
    SettingsUpdate,
    StoredMessage,
)

__all__ = [
    "ChatHistory",
    "ChatMessage",
    "ChatRequest",
    "ErrorResponse",
    "KnowledgeFile",
    "KnowledgeUrl",
    "Role",
    "Settings",
    "SettingsUpdate",
    "StoredMessage",
]
