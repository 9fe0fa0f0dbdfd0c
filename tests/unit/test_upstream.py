"""Unit tests for SSE parsing, error mapping and the ChatRelay service."""

import httpx
import pytest
import pytest_check as check

from chatrelay.models.schemas import ChatMessage, ChatRequest, Role
from chatrelay.relay.errors import (
    EXAMPLE_BASE_URL,
    RelayError,
    RelayStreamError,
    describe_upstream_status,
)
from chatrelay.relay.upstream import ChatRelay, is_done_line, parse_sse_line
from tests.conftest import UPSTREAM_URL, FakeUpstream, sse_chunk


def make_request(**overrides) -> ChatRequest:
    fields = {
        "messages": [ChatMessage(role=Role.USER, content="Hi")],
        "api_key": "sk-test",
        "api_base_url": UPSTREAM_URL,
    }
    fields.update(overrides)
    return ChatRequest(**fields)


class TestParseSseLine:
    """Tests for extracting deltas from upstream lines."""

    def test_extracts_delta_content(self) -> None:
        assert parse_sse_line(sse_chunk("Hello").strip()) == "Hello"

    def test_keeps_whitespace_in_delta(self) -> None:
        assert parse_sse_line(sse_chunk(" world\n").strip()) == " world\n"

    @pytest.mark.parametrize(
        "line",
        [
            "",
            ": keep-alive",
            "event: ping",
            "data: ",
            "data: [DONE]",
            "data: {not json",
            "data: []",
            'data: {"choices": []}',
            'data: {"choices": [{"delta": {}}]}',
            'data: {"choices": [{"delta": {"role": "assistant"}}]}',
            'data: {"choices": [{"delta": {"content": ""}}]}',
            'data: {"choices": [{"delta": {"content": 42}}]}',
        ],
    )
    def test_skips_lines_without_text(self, line: str) -> None:
        """Non-data, malformed or empty lines yield nothing."""
        assert parse_sse_line(line) is None

    def test_detects_done_sentinel(self) -> None:
        check.is_true(is_done_line("data: [DONE]"))
        check.is_true(is_done_line("data: [DONE]  "))
        check.is_false(is_done_line(sse_chunk("[DONE]").strip()))
        check.is_false(is_done_line("[DONE]"))


class TestDescribeUpstreamStatus:
    """Tests for upstream status to message mapping."""

    @pytest.mark.parametrize(
        ("status_code", "fragment"),
        [
            (401, "Invalid API key (401)"),
            (403, "Access denied (403)"),
            (405, "/v1/chat/completions"),
            (413, "Request too large (413)"),
            (429, "Too many requests (429)"),
            (500, "Upstream server error (500)"),
        ],
    )
    def test_known_statuses(self, status_code: int, fragment: str) -> None:
        assert fragment in describe_upstream_status(status_code, UPSTREAM_URL, "")

    def test_not_found_echoes_url(self) -> None:
        """404 shows the configured URL and a suggested one."""
        message = describe_upstream_status(404, "https://bad.test/v1", "")

        check.is_in("https://bad.test/v1", message)
        check.is_in(EXAMPLE_BASE_URL, message)

    def test_unknown_status_includes_body(self) -> None:
        message = describe_upstream_status(418, UPSTREAM_URL, "I'm a teapot")

        assert message == "AI API error (418): I'm a teapot"


class TestChatRelay:
    """Tests for ChatRelay against a scripted upstream."""

    async def test_streams_deltas_in_order(
        self, chat_relay: ChatRelay, upstream: FakeUpstream
    ) -> None:
        """Deltas split across network chunks arrive whole and in order."""
        upstream.reply(["Hel", "lo, ", "wörld", "!"])
        upstream.piece_size = 3

        stream = await chat_relay.open_stream(make_request())
        deltas = [d async for d in stream.iter_deltas()]

        assert deltas == ["Hel", "lo, ", "wörld", "!"]

    async def test_stops_at_done(self, chat_relay: ChatRelay, upstream: FakeUpstream) -> None:
        """Lines after [DONE] are ignored."""
        upstream.body = sse_chunk("A") + "data: [DONE]\n\n" + sse_chunk("ignored")

        assert await chat_relay.collect(make_request()) == "A"

    async def test_ends_without_done(self, chat_relay: ChatRelay, upstream: FakeUpstream) -> None:
        upstream.reply(["A", "B"], done=False)

        assert await chat_relay.collect(make_request()) == "AB"

    async def test_skips_malformed_lines(
        self, chat_relay: ChatRelay, upstream: FakeUpstream
    ) -> None:
        upstream.body = sse_chunk("A") + "data: {broken\n\n" + sse_chunk("B") + "data: [DONE]\n\n"

        assert await chat_relay.collect(make_request()) == "AB"

    async def test_sends_bearer_key_and_payload(
        self, chat_relay: ChatRelay, upstream: FakeUpstream
    ) -> None:
        await chat_relay.collect(make_request(model="gpt-4", temperature=0.2))

        request = upstream.requests[0]
        check.equal(str(request.url), UPSTREAM_URL)
        check.equal(request.headers["Authorization"], "Bearer sk-test")
        check.equal(upstream.last_payload["model"], "gpt-4")
        check.equal(upstream.last_payload["temperature"], 0.2)
        check.is_true(upstream.last_payload["stream"])

    async def test_upstream_error_status(
        self, chat_relay: ChatRelay, upstream: FakeUpstream
    ) -> None:
        """An upstream error becomes a RelayError with the same status."""
        upstream.fail(401)

        with pytest.raises(RelayError) as exc_info:
            await chat_relay.open_stream(make_request())

        check.equal(exc_info.value.status_code, 401)
        check.is_in("Invalid API key (401)", exc_info.value.message)

    async def test_invalid_request_never_reaches_upstream(
        self, chat_relay: ChatRelay, upstream: FakeUpstream
    ) -> None:
        with pytest.raises(RelayError):
            await chat_relay.open_stream(make_request(api_key=""))

        assert upstream.requests == []

    async def test_connection_failure_propagates(
        self, chat_relay: ChatRelay, upstream: FakeUpstream
    ) -> None:
        upstream.error = httpx.ConnectError("Connection refused")

        with pytest.raises(httpx.ConnectError):
            await chat_relay.open_stream(make_request())

    async def test_empty_body_is_an_error(
        self, chat_relay: ChatRelay, upstream: FakeUpstream
    ) -> None:
        """A success status with a zero-length body is not relayed."""
        upstream.empty()

        with pytest.raises(RelayStreamError, match="No response body"):
            await chat_relay.open_stream(make_request())

    async def test_mid_stream_failure(self, relay_config, upstream: FakeUpstream) -> None:
        """A transport error after the first delta raises RelayStreamError."""

        class BrokenStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield sse_chunk("A").encode("utf-8")
                raise httpx.ReadError("connection reset")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=BrokenStream())

        relay = ChatRelay(config=relay_config, transport=httpx.MockTransport(handler))
        stream = await relay.open_stream(make_request())

        received = []
        with pytest.raises(RelayStreamError):
            async for delta in stream.iter_deltas():
                received.append(delta)

        assert received == ["A"]
