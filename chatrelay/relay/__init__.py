"""Streaming relay to OpenAI-compatible chat-completions APIs.

Responsibilities:
    - Validation of per-request credentials and upstream URL
    - System prompt assembly with knowledge-base content
    - Upstream status mapping to readable error messages
    - SSE decoding into plain-text deltas

Maintains clean separation from the HTTP layer.
"""

from chatrelay.relay.config import RelayConfig, get_relay_config
from chatrelay.relay.errors import RelayError, RelayStreamError
from chatrelay.relay.upstream import ChatRelay, RelayStream, get_chat_relay, parse_sse_line

__all__ = [
    "ChatRelay",
    "RelayConfig",
    "RelayError",
    "RelayStream",
    "RelayStreamError",
    "get_chat_relay",
    "get_relay_config",
    "parse_sse_line",
]
