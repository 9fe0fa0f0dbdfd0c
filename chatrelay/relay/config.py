"""Relay configuration with environment variable loading.

Pydantic-based configuration for the chat relay and settings store.
Per-request values (API key, base URL, model) come from the browser;
these are the server-side defaults and limits.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from chatrelay.models.schemas import (
    DEFAULT_API_BASE_URL,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
)

# Load environment variables from .env file
load_dotenv()


def _optional_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    if raw.strip().lower() == "none":
        return None
    return float(raw)


class RelayConfig(BaseModel):
    """Configuration for the streaming relay.

    Attributes:
        default_base_url: Upstream endpoint used when settings are reset.
        default_model: Model used when a request names none.
        default_temperature: Temperature used when a request names none.
        default_system_prompt: Prompt used when a request carries none.
        request_timeout: Upstream timeout in seconds (None disables it).
        settings_path: JSON file backing the server-side settings store.
        access_password: Optional passphrase for the UI gate.
    """

    model_config = ConfigDict(protected_namespaces=())

    default_base_url: str = Field(
        default_factory=lambda: os.getenv("CHAT_API_BASE_URL", DEFAULT_API_BASE_URL),
        description="Default upstream chat-completions URL",
    )
    default_model: str = Field(
        default_factory=lambda: os.getenv("CHAT_MODEL", DEFAULT_MODEL),
        description="Model used when the request does not name one",
    )
    default_temperature: float = Field(
        default=DEFAULT_TEMPERATURE,
        ge=0.0,
        le=2.0,
        description="Sampling temperature used when the request has none",
    )
    default_system_prompt: str = Field(
        default_factory=lambda: os.getenv("CHAT_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
        description="System prompt used when the request has none",
    )
    request_timeout: float | None = Field(
        default_factory=lambda: _optional_float("RELAY_TIMEOUT", 120.0),
        description="Upstream request timeout in seconds",
    )
    settings_path: Path = Field(
        default_factory=lambda: Path(os.getenv("SETTINGS_PATH", "data/settings.json")),
        description="File backing the server-side settings store",
    )
    access_password: str | None = Field(
        default_factory=lambda: os.getenv("ACCESS_PASSWORD") or None,
        description="Passphrase required by the UI gate (disabled when unset)",
    )

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: float | None) -> float | None:
        """Reject non-positive timeouts."""
        if v is not None and v <= 0:
            raise ValueError("request_timeout must be positive (or None to disable)")
        return v

    @field_validator("default_model")
    @classmethod
    def validate_default_model(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("default_model must not be empty. Set CHAT_MODEL in .env")
        return v.strip()


def get_relay_config() -> RelayConfig:
    """Create relay configuration from environment.

    Returns:
        Configured RelayConfig instance.
    """
    return RelayConfig()
