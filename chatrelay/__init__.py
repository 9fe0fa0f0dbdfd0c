"""Chat Relay - browser chat UI for OpenAI-compatible chat-completions APIs.

Combines FastAPI for the streaming proxy, httpx for upstream calls,
NiceGUI for the browser interface, and Pydantic for data validation.

Components:
    - api: HTTP endpoints and plain-text streaming responses
    - relay: Upstream request building and SSE delta extraction
    - knowledge: Text extraction for knowledge-base uploads
    - store: Settings mirror and per-browser chat state
    - ui: Web interface for chat interactions
    - models: Request/response schemas and stored records
"""

__version__ = "0.1.0"
