"""Streaming relay to an OpenAI-compatible chat-completions endpoint.

Core module of the proxy: sends one streamed completion request per chat
submission and turns the upstream Server-Sent-Events body into plain text
deltas.

Behavior notes:

1. **Status before stream** - The upstream response status is checked before
   any byte is forwarded, so a failed call becomes a single JSON error with a
   readable message instead of a broken stream.

2. **Line reassembly only** - httpx's ``aiter_lines`` rejoins lines split
   across network chunks. Nothing else is buffered; each delta is yielded as
   soon as its line is complete.

3. **Skip malformed lines** - Lines that are not ``data: {...}`` or lack
   ``choices[0].delta.content`` are skipped and logged at debug level.

4. **No retries** - A transport error mid-stream ends the output with
   ``RelayStreamError``.
"""

import json
import logging
from collections.abc import AsyncGenerator

import httpx

from chatrelay.models.schemas import ChatRequest
from chatrelay.relay.config import RelayConfig, get_relay_config
from chatrelay.relay.errors import RelayError, RelayStreamError, describe_upstream_status
from chatrelay.relay.prompt import (
    PromptStats,
    build_payload,
    build_system_prompt,
    compute_stats,
    validate_request,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def is_done_line(line: str) -> bool:
    """Check whether an SSE line carries the end-of-stream sentinel."""
    return line.startswith(DATA_PREFIX) and line[len(DATA_PREFIX):].strip() == DONE_SENTINEL


def parse_sse_line(line: str) -> str | None:
    """Extract the text delta from one SSE line.

    Args:
        line: A single line of the upstream body, without the newline.

    Returns:
        The ``choices[0].delta.content`` text, or None when the line is not a
        data line, is not valid JSON, or has no text delta.
    """
    if not line.startswith(DATA_PREFIX):
        return None

    data = line[len(DATA_PREFIX):].strip()
    if not data or data == DONE_SENTINEL:
        return None

    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug(f"Skipping undecodable stream line: {data[:80]!r}")
        return None

    if not isinstance(payload, dict):
        return None

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None

    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None

    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class RelayStream:
    """An open upstream response, consumed once as a stream of deltas.

    Owns the HTTP client and response and closes both when iteration ends.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        response: httpx.Response,
        stats: PromptStats,
    ) -> None:
        self._client = client
        self._response = response
        self.stats = stats

    async def iter_deltas(self) -> AsyncGenerator[str]:
        """Yield text deltas in arrival order until ``[DONE]`` or end of body.

        Raises:
            RelayStreamError: If the upstream connection fails mid-stream.
        """
        try:
            async for line in self._response.aiter_lines():
                if is_done_line(line):
                    return
                if delta := parse_sse_line(line):
                    yield delta
        except httpx.HTTPError as e:
            logger.error(f"Upstream stream failed: {e}")
            raise RelayStreamError(f"Upstream stream failed: {e}") from e
        finally:
            await self.aclose()

    async def iter_bytes(self) -> AsyncGenerator[bytes]:
        """Yield deltas encoded as UTF-8 for a plain-text response body."""
        async for delta in self.iter_deltas():
            yield delta.encode("utf-8")

    async def aclose(self) -> None:
        await self._response.aclose()
        await self._client.aclose()


class ChatRelay:
    """Service that forwards chat requests to the configured upstream API.

    Wraps httpx with:
    - Credential and URL validation with fixed user-facing messages
    - System prompt and knowledge-base assembly
    - Status-code to message mapping for upstream failures
    - A plain-text delta stream for the proxy endpoint
    """

    def __init__(
        self,
        config: RelayConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the relay.

        Args:
            config: Optional relay configuration.
                    Loads from environment if not provided.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        """
        self._config = config or get_relay_config()
        self._transport = transport

    @property
    def config(self) -> RelayConfig:
        return self._config

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._config.request_timeout,
            transport=self._transport,
        )

    async def open_stream(self, request: ChatRequest) -> RelayStream:
        """Send the upstream request and return the open stream.

        Args:
            request: Validated proxy request.

        Returns:
            RelayStream ready for iteration.

        Raises:
            RelayError: 400 for missing/invalid credentials, or the upstream
                status with a descriptive message when the call fails.
            RelayStreamError: If the upstream answers with an empty body.
            httpx.RequestError: If the upstream cannot be reached.
        """
        api_key, base_url = validate_request(request)

        system_prompt = build_system_prompt(request, self._config)
        payload = build_payload(request, self._config, system_prompt)
        stats = compute_stats(request, system_prompt)

        client = self._create_client()
        try:
            upstream_request = client.build_request(
                "POST",
                base_url,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
            response = await client.send(upstream_request, stream=True)
        except BaseException:
            await client.aclose()
            raise

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await response.aclose()
                await client.aclose()
            logger.error(f"AI API error {response.status_code} from {base_url}: {body[:500]}")
            raise RelayError(
                describe_upstream_status(response.status_code, base_url, body),
                status_code=response.status_code,
            )

        if response.headers.get("content-length") == "0":
            await response.aclose()
            await client.aclose()
            logger.error(f"AI API returned an empty body from {base_url}")
            raise RelayStreamError("No response body")

        logger.info(
            f"Relaying {len(request.messages)} messages to {base_url} "
            f"(model={payload['model']}, ~{stats.estimated_tokens} tokens)"
        )
        return RelayStream(client, response, stats)

    async def collect(self, request: ChatRequest) -> str:
        """Relay a request and return the complete response text.

        Non-streaming alternative for simpler use cases.
        """
        stream = await self.open_stream(request)
        return "".join([delta async for delta in stream.iter_deltas()])


# Module-level singleton instance
_chat_relay: ChatRelay | None = None


def get_chat_relay() -> ChatRelay:
    """Get or create the global chat relay.

    Returns:
        The ChatRelay instance.
    """
    global _chat_relay
    if _chat_relay is None:
        _chat_relay = ChatRelay()
    return _chat_relay
