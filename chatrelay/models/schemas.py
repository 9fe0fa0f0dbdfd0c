from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_API_BASE_URL = "https://aihubmix.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_SYSTEM_PROMPT = (
    "You are a friendly and knowledgeable AI assistant. "
    "Answer the user's questions in a warm, approachable tone."
)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys.

    Accepts both ``apiKey`` and ``api_key`` on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class Role(str, Enum):
    """Speaker of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class KnowledgeFile(CamelModel):
    """A text document attached to the knowledge base.

    Attributes:
        id: Unique identifier.
        filename: Original file name.
        content: Extracted text content.
        size: Size of the uploaded file in bytes.
        upload_time: Upload time in epoch milliseconds.
    """

    id: str
    filename: str
    content: str
    size: int = Field(default=0, ge=0)
    upload_time: int = 0


class KnowledgeUrl(CamelModel):
    """A reference link attached to the knowledge base."""

    id: str
    url: str
    title: str
    description: str | None = None
    add_time: int = 0


class Settings(CamelModel):
    """User settings mirrored on the server.

    Attributes:
        api_key: Key for the upstream chat-completions API.
        api_base_url: Full URL of the upstream chat-completions endpoint.
        system_prompt: Prompt placed before every conversation.
        temperature: Sampling temperature.
        model_name: Upstream model identifier.
        knowledge_base_files: Attached knowledge documents.
        knowledge_base_urls: Attached reference links.
        revision: Incremented on every write, used for conflict detection.
        last_updated: Time of the last write in epoch milliseconds.
    """

    api_key: str = ""
    api_base_url: str = DEFAULT_API_BASE_URL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    model_name: str = DEFAULT_MODEL
    knowledge_base_files: list[KnowledgeFile] = Field(default_factory=list)
    knowledge_base_urls: list[KnowledgeUrl] = Field(default_factory=list)
    revision: int = Field(default=0, ge=0)
    last_updated: int = 0


class SettingsUpdate(CamelModel):
    """Partial settings payload. Only fields present in the request are applied.

    ``revision``, when given, must match the stored revision.
    """

    api_key: str | None = None
    api_base_url: str | None = None
    system_prompt: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    model_name: str | None = None
    knowledge_base_files: list[KnowledgeFile] | None = None
    knowledge_base_urls: list[KnowledgeUrl] | None = None
    revision: int | None = None


class SettingsResponse(CamelModel):
    """Envelope returned by the settings endpoints."""

    success: bool = True
    message: str | None = None
    data: Settings | None = None


class KnowledgeFileSummary(CamelModel):
    id: str
    filename: str
    size: int
    upload_time: int


class SettingsDebug(CamelModel):
    """Diagnostic view of the stored settings without secrets."""

    has_api_key: bool
    has_system_prompt: bool
    knowledge_file_count: int
    knowledge_files: list[KnowledgeFileSummary]
    knowledge_url_count: int
    temperature: float
    model_name: str
    revision: int
    last_updated: int


class SettingsDebugResponse(CamelModel):
    success: bool = True
    debug: SettingsDebug


class ChatMessage(CamelModel):
    """A message sent to the proxy.

    Attributes:
        role: The speaker (system, user, or assistant).
        content: The message text, or OpenAI-style content parts which are
            forwarded unchanged.
        image_url: Optional image as a data URL.
        document_name: Optional name of an attached document.
    """

    role: Role
    content: str | list[dict[str, Any]] = ""
    image_url: str | None = None
    document_name: str | None = None

    @property
    def text(self) -> str:
        """The plain text of the message, joining text parts."""
        if isinstance(self.content, str):
            return self.content
        return "".join(
            part["text"]
            for part in self.content
            if part.get("type") == "text" and isinstance(part.get("text"), str)
        )


class ChatRequest(CamelModel):
    """Request payload for the chat proxy endpoint.

    Credentials are not validated here: missing values are reported with
    a 400 and a readable message by the relay, not as a schema error.
    """

    messages: list[ChatMessage] = Field(default_factory=list)
    model: str | None = None
    api_key: str | None = None
    api_base_url: str | None = None
    system_prompt: str | None = None
    knowledge_base: str | None = None
    knowledge_base_files: list[KnowledgeFile] = Field(default_factory=list)
    knowledge_base_urls: list[KnowledgeUrl] = Field(default_factory=list)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)

    @field_validator("api_key", "api_base_url", mode="before")
    @classmethod
    def strip_credentials(cls, v: str | None) -> str | None:
        """Strip whitespace and a stray leading '@' pasted with URLs."""
        if isinstance(v, str):
            return v.strip().lstrip("@")
        return v


class ErrorResponse(BaseModel):
    """JSON error body returned instead of a stream."""

    error: str
    details: str | None = None


class StoredMessage(CamelModel):
    """A chat message kept in client-side storage."""

    id: str
    role: Role
    content: str
    timestamp: int
    image_url: str | None = None
    document_name: str | None = None


class ChatHistory(CamelModel):
    """A saved conversation.

    Attributes:
        id: Unique identifier.
        title: Prefix of the first user message.
        messages: The conversation, in order.
        created_at: Save time in epoch milliseconds.
    """

    id: str
    title: str
    messages: list[StoredMessage]
    created_at: int


class KnowledgeUrlCreate(CamelModel):
    url: str = Field(..., min_length=1)
    title: str | None = None
    description: str | None = None


class KnowledgeUploadResponse(CamelModel):
    """Response after a knowledge file upload."""

    file: KnowledgeFile
    success: bool = True
    warning: str | None = None
