"""Persistence for settings and chat state.

Responsibilities:
    - Server-side settings mirror in a versioned JSON file
    - Optimistic-concurrency revisions for settings writes
    - Per-browser message log, chat history and model history
    - Schema upgrades for data written by older versions
"""

from chatrelay.store.client_state import ClientSettings, HistoryBook, MessageLog, ModelHistory
from chatrelay.store.migrations import SchemaMigrator, SchemaVersionError
from chatrelay.store.settings_store import (
    SettingsConflictError,
    SettingsStore,
    get_settings_store,
)

__all__ = [
    "ClientSettings",
    "HistoryBook",
    "MessageLog",
    "ModelHistory",
    "SchemaMigrator",
    "SchemaVersionError",
    "SettingsConflictError",
    "SettingsStore",
    "get_settings_store",
]
