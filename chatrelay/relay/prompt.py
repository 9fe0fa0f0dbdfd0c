"""Prompt assembly for upstream chat-completions requests.

Combines the system prompt with knowledge-base attachments, validates the
per-request credentials and builds the OpenAI-style streaming payload.
"""

import math
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from chatrelay.models.schemas import ChatMessage, ChatRequest, Role
from chatrelay.relay.config import RelayConfig
from chatrelay.relay.errors import (
    MISSING_API_KEY,
    MISSING_BASE_URL,
    RelayError,
    invalid_base_url_message,
)

KNOWLEDGE_HEADER = (
    "The following is knowledge-base content. "
    "Use it together with your own knowledge to answer the user's questions:"
)

# Rough characters-per-token ratio for English text
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class PromptStats:
    """Debug figures reported to the browser in response headers."""

    prompt_length: int
    estimated_tokens: int
    knowledge_file_count: int
    has_image: bool

    def as_headers(self) -> dict[str, str]:
        return {
            "X-Prompt-Length": str(self.prompt_length),
            "X-Estimated-Tokens": str(self.estimated_tokens),
            "X-Knowledge-File-Count": str(self.knowledge_file_count),
            "X-Has-Image": "true" if self.has_image else "false",
        }


def validate_request(request: ChatRequest) -> tuple[str, str]:
    """Check the credentials carried by a chat request.

    Args:
        request: Incoming proxy request.

    Returns:
        The API key and base URL.

    Raises:
        RelayError: 400 if either is missing or the URL is malformed.
    """
    if not request.api_key:
        raise RelayError(MISSING_API_KEY)

    if not request.api_base_url:
        raise RelayError(MISSING_BASE_URL)

    parsed = urlparse(request.api_base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise RelayError(invalid_base_url_message(request.api_base_url))

    return request.api_key, request.api_base_url


def build_system_prompt(request: ChatRequest, config: RelayConfig) -> str:
    """Build the system prompt including any attached knowledge.

    Knowledge is appended in three parts: inline text, one section per
    file, and a list of reference links.
    """
    prompt = request.system_prompt or config.default_system_prompt

    sections: list[str] = []
    if request.knowledge_base and request.knowledge_base.strip():
        sections.append(request.knowledge_base.strip())

    for knowledge_file in request.knowledge_base_files:
        if knowledge_file.content.strip():
            sections.append(f"### {knowledge_file.filename}\n{knowledge_file.content.strip()}")

    if request.knowledge_base_urls:
        links = []
        for link in request.knowledge_base_urls:
            line = f"- {link.title}: {link.url}"
            if link.description:
                line += f" ({link.description})"
            links.append(line)
        sections.append("Reference links:\n" + "\n".join(links))

    if sections:
        prompt += "\n\n" + KNOWLEDGE_HEADER + "\n" + "\n\n".join(sections)

    return prompt


def _to_upstream_message(message: ChatMessage) -> dict[str, Any]:
    """Convert a proxy message to the chat-completions message format.

    Content already given as parts is forwarded unchanged.
    """
    if message.image_url and message.role == Role.USER:
        if isinstance(message.content, list):
            parts = list(message.content)
        else:
            parts = [{"type": "text", "text": message.content}] if message.content else []
        parts.append({"type": "image_url", "image_url": {"url": message.image_url}})
        return {"role": message.role.value, "content": parts}
    return {"role": message.role.value, "content": message.content}


def build_payload(
    request: ChatRequest,
    config: RelayConfig,
    system_prompt: str | None = None,
) -> dict[str, Any]:
    """Build the streaming chat-completions request body.

    Args:
        request: Incoming proxy request.
        config: Relay defaults for model and temperature.
        system_prompt: Prebuilt system prompt (built from the request if omitted).

    Returns:
        JSON-serializable payload with the system message first.
    """
    if system_prompt is None:
        system_prompt = build_system_prompt(request, config)

    messages = [{"role": Role.SYSTEM.value, "content": system_prompt}]
    messages.extend(_to_upstream_message(m) for m in request.messages)

    temperature = request.temperature
    if temperature is None:
        temperature = config.default_temperature

    return {
        "model": request.model or config.default_model,
        "messages": messages,
        "temperature": temperature,
        "stream": True,
    }


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def compute_stats(request: ChatRequest, system_prompt: str) -> PromptStats:
    """Compute the debug figures for a relayed request."""
    total_text = system_prompt + "".join(m.text for m in request.messages)
    return PromptStats(
        prompt_length=len(system_prompt),
        estimated_tokens=estimate_tokens(total_text),
        knowledge_file_count=len(request.knowledge_base_files),
        has_image=any(m.image_url for m in request.messages),
    )
