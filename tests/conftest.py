"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - relay_config: RelayConfig pointing at a temporary settings file
    - settings_store: SettingsStore backed by a temporary file
    - upstream: Scripted fake of the upstream chat-completions API
    - relay_app: FastAPI app wired to the fake upstream and temporary store
    - api_client: HTTPX client for relay_app

The upstream API is replaced by ``httpx.MockTransport``; no network access
or API key is needed.
"""

import json
from collections.abc import AsyncGenerator, Iterable
from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from chatrelay.api.app import create_app
from chatrelay.relay.config import RelayConfig
from chatrelay.relay.upstream import ChatRelay, get_chat_relay
from chatrelay.store.settings_store import (
    SettingsStore,
    default_settings_factory,
    get_settings_store,
)

UPSTREAM_URL = "https://upstream.test/v1/chat/completions"


def sse_chunk(content: str) -> str:
    """Format one upstream SSE data line carrying a text delta."""
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n\n"


def sse_body(deltas: Iterable[str], done: bool = True) -> str:
    """Format a full upstream SSE body."""
    body = "".join(sse_chunk(d) for d in deltas)
    if done:
        body += "data: [DONE]\n\n"
    return body


class SplitStream(httpx.AsyncByteStream):
    """Async byte stream that delivers a body in fixed-size pieces.

    Splitting at arbitrary offsets exercises line reassembly across
    network chunks.
    """

    def __init__(self, body: bytes, piece_size: int = 7) -> None:
        self._body = body
        self._piece_size = piece_size

    async def __aiter__(self) -> AsyncGenerator[bytes]:
        for i in range(0, len(self._body), self._piece_size):
            yield self._body[i : i + self._piece_size]


class FakeUpstream:
    """Scripted upstream API.

    Attributes:
        requests: Every request received, in order.
        status_code: Status returned by the next responses.
        body: Raw body returned by the next responses.
        piece_size: Chunk size used to split streamed bodies.
        error: If set, raised instead of answering.
        headers: Headers sent with every response.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body = sse_body(["Hello"])
        self.piece_size = 7
        self.error: Exception | None = None
        self.headers = {"content-type": "text/event-stream"}

    def reply(self, deltas: Iterable[str], done: bool = True) -> None:
        self.status_code = 200
        self.body = sse_body(deltas, done=done)

    def empty(self) -> None:
        """Answer 200 with a declared zero-length body."""
        self.status_code = 200
        self.body = ""
        self.headers["content-length"] = "0"

    def fail(self, status_code: int, body: str = '{"error": "upstream"}') -> None:
        self.status_code = status_code
        self.body = body

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            stream=SplitStream(self.body.encode("utf-8"), self.piece_size),
        )

    @property
    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def relay_config(tmp_path: Path) -> RelayConfig:
    """Relay configuration isolated from the developer's .env."""
    return RelayConfig(
        default_base_url=UPSTREAM_URL,
        default_model="test-model",
        default_system_prompt="You are a test assistant.",
        request_timeout=5.0,
        settings_path=tmp_path / "settings.json",
        access_password=None,
    )


@pytest.fixture
def settings_store(relay_config: RelayConfig) -> SettingsStore:
    """Settings store backed by a file in a temporary directory."""
    return SettingsStore(
        relay_config.settings_path,
        defaults=default_settings_factory(relay_config),
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def chat_relay(relay_config: RelayConfig, upstream: FakeUpstream) -> ChatRelay:
    """Relay wired to the fake upstream."""
    return ChatRelay(config=relay_config, transport=upstream.transport)


@pytest.fixture
def relay_app(chat_relay: ChatRelay, settings_store: SettingsStore) -> FastAPI:
    """Relay API using the fake upstream and temporary store."""
    app = create_app()
    app.dependency_overrides[get_chat_relay] = lambda: chat_relay
    app.dependency_overrides[get_settings_store] = lambda: settings_store
    return app


@pytest.fixture
async def api_client(relay_app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=relay_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
