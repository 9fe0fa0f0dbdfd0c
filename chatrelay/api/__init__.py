"""FastAPI endpoints for the chat relay.

HTTP and streaming routes with async request handling.

Endpoints:
    - GET /health: Service health status
    - POST /api/chat: Relay a conversation, stream the answer as plain text
    - GET/POST/DELETE /api/settings: Server-side settings mirror
    - GET /api/settings/debug: Settings summary without secrets
    - POST/DELETE /api/knowledge/...: Knowledge-base files and links
"""
