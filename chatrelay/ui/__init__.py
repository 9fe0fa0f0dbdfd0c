"""NiceGUI interface for the chat relay.

Responsibilities:
    - Chat message display with streaming updates
    - Settings dialog with provider presets and knowledge uploads
    - Saved chat histories with search
    - Optional passphrase gate

State lives in NiceGUI's per-browser storage; upstream calls go
through the relay API.
"""
