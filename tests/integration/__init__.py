"""Integration tests for components working together as a system.

Coverage:
    - API endpoints with real HTTP requests through ASGITransport
    - Chat streaming from a scripted upstream to the plain-text response
    - Settings persistence and knowledge uploads on a temporary store
    - The UI's HTTP client against the running app

Only the upstream chat-completions API is faked (httpx.MockTransport).
"""
