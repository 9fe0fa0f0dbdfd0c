"""Test package for the chat relay.

Provides coverage for all components with unit tests for isolated logic
and integration tests for workflows.

Structure:
    - unit/: Individual function and class tests
    - integration/: API and UI client tests against the ASGI app

The upstream chat-completions API is replaced by httpx.MockTransport, so no
API key or network access is needed.
Leverages pytest with pytest-check for soft assertions.
"""
