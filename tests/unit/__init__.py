"""Unit tests for individual components in isolation.

Ensures fast execution with minimal dependencies.

Coverage:
    - relay/: Configuration, prompt assembly, SSE parsing and error mapping
    - knowledge/: Text extraction for knowledge files
    - store/: Settings store, schema migrations and per-browser state
    - ui/: Chat session and access gate logic

Leverages pytest-check for multiple assertions per test.
"""
