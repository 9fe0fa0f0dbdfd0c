"""Per-browser chat state: current messages, saved histories and model names.

Each class works on any mutable mapping. The UI passes NiceGUI's
per-browser ``app.storage.user``; tests pass a plain dict. Values are stored
as versioned envelopes (see ``chatrelay.store.migrations``).
"""

import logging
import uuid
from collections.abc import Callable, MutableMapping
from typing import Any

from pydantic import ValidationError

from chatrelay.models.schemas import ChatHistory, Role, Settings, StoredMessage
from chatrelay.store.migrations import (
    HISTORY_SCHEMA,
    MESSAGES_SCHEMA,
    SETTINGS_SCHEMA,
    SchemaMigrator,
    SchemaVersionError,
)
from chatrelay.store.settings_store import now_ms

logger = logging.getLogger(__name__)

MAX_HISTORIES = 20
TITLE_LENGTH = 30
MAX_MODEL_HISTORY = 10
DEFAULT_MODELS = ["gpt-3.5-turbo", "gpt-4", "gpt-4-turbo", "claude-3-haiku", "claude-3-sonnet"]

MODELS_SCHEMA = SchemaMigrator("models", version=0, upgrades={})


def new_message_id() -> str:
    return str(uuid.uuid4())


class _VersionedList:
    """A list of JSON records kept under one key of a storage mapping."""

    def __init__(
        self,
        storage: MutableMapping[str, Any],
        key: str,
        schema: SchemaMigrator,
    ) -> None:
        self._storage = storage
        self._key = key
        self._schema = schema

    def _read(self) -> list[Any]:
        raw = self._storage.get(self._key)
        if raw is None:
            return []
        try:
            return list(self._schema.unwrap(raw))
        except SchemaVersionError as e:
            logger.error(f"Discarding unreadable {self._key}: {e}")
            return []

    def _write(self, items: list[Any]) -> None:
        self._storage[self._key] = self._schema.wrap(items)


class MessageLog(_VersionedList):
    """The in-progress conversation, in display order."""

    def __init__(self, storage: MutableMapping[str, Any], key: str = "messages") -> None:
        super().__init__(storage, key, MESSAGES_SCHEMA)

    def messages(self) -> list[StoredMessage]:
        return [StoredMessage.model_validate(m) for m in self._read()]

    def add(self, message: StoredMessage) -> None:
        items = self._read()
        items.append(message.model_dump(mode="json", by_alias=True))
        self._write(items)

    def update(self, message_id: str, content: str) -> bool:
        """Replace the content of one message. Returns False if it is missing."""
        items = self._read()
        for item in items:
            if item["id"] == message_id:
                item["content"] = content
                self._write(items)
                return True
        return False

    def delete(self, message_id: str) -> None:
        self._write([m for m in self._read() if m["id"] != message_id])

    def replace(self, messages: list[StoredMessage]) -> None:
        self._write([m.model_dump(mode="json", by_alias=True) for m in messages])

    def clear(self) -> None:
        self._write([])


def make_title(messages: list[StoredMessage]) -> str:
    """Title a conversation after the first user message."""
    first_user = next((m for m in messages if m.role == Role.USER), None)
    if first_user is None:
        return "New chat"
    return first_user.content[:TITLE_LENGTH] + "..."


class HistoryBook(_VersionedList):
    """Saved conversations, newest first, capped at ``MAX_HISTORIES``."""

    def __init__(self, storage: MutableMapping[str, Any], key: str = "chat_histories") -> None:
        super().__init__(storage, key, HISTORY_SCHEMA)

    def histories(self) -> list[ChatHistory]:
        return [ChatHistory.model_validate(h) for h in self._read()]

    def save(self, messages: list[StoredMessage]) -> ChatHistory | None:
        """Save a completed exchange.

        Args:
            messages: The conversation to save.

        Returns:
            The new history record, or None if there was nothing to save.
        """
        if not messages:
            return None

        created_at = now_ms()
        history = ChatHistory(
            id=f"chat-{created_at}-{uuid.uuid4().hex[:9]}",
            title=make_title(messages),
            messages=messages,
            created_at=created_at,
        )

        items = self._read()
        items.insert(0, history.model_dump(mode="json", by_alias=True))
        self._write(items[:MAX_HISTORIES])
        return history

    def get(self, history_id: str) -> ChatHistory | None:
        for history in self.histories():
            if history.id == history_id:
                return history
        return None

    def delete(self, history_id: str) -> None:
        self._write([h for h in self._read() if h["id"] != history_id])

    def clear(self) -> None:
        self._write([])

    def search(self, query: str) -> list[ChatHistory]:
        """Find histories whose title or any message contains ``query``.

        Matching is case-insensitive; a blank query returns everything.
        """
        needle = query.strip().lower()
        histories = self.histories()
        if not needle:
            return histories
        return [
            h
            for h in histories
            if needle in h.title.lower() or any(needle in m.content.lower() for m in h.messages)
        ]


class ClientSettings:
    """The browser's own copy of the settings.

    Unreadable stored settings are logged and replaced by defaults.
    """

    def __init__(
        self,
        storage: MutableMapping[str, Any],
        key: str = "settings",
        defaults: Callable[[], Settings] = Settings,
    ) -> None:
        self._storage = storage
        self._key = key
        self._defaults = defaults

    def load(self) -> Settings:
        raw = self._storage.get(self._key)
        if raw is None:
            return self._defaults()
        try:
            return Settings.model_validate(SETTINGS_SCHEMA.unwrap(raw))
        except (SchemaVersionError, ValidationError) as e:
            logger.error(f"Discarding unreadable browser settings: {e}")
            return self._defaults()

    def save(self, settings: Settings) -> None:
        self._storage[self._key] = SETTINGS_SCHEMA.wrap(
            settings.model_dump(mode="json", by_alias=True)
        )

    def update(self, **changes: Any) -> Settings:
        """Apply field changes (snake_case names) and persist the result."""
        settings = Settings.model_validate({**self.load().model_dump(), **changes})
        self.save(settings)
        return settings

    def reset(self) -> Settings:
        settings = self._defaults()
        self.save(settings)
        return settings


class ModelHistory(_VersionedList):
    """Recently used model names, most recent first."""

    def __init__(self, storage: MutableMapping[str, Any], key: str = "model_history") -> None:
        super().__init__(storage, key, MODELS_SCHEMA)

    def models(self) -> list[str]:
        if self._key not in self._storage:
            return list(DEFAULT_MODELS)
        return [m for m in self._read() if isinstance(m, str)]

    def add(self, model_name: str) -> None:
        name = model_name.strip()
        if not name:
            return
        models = [m for m in self.models() if m != name]
        self._write([name, *models][:MAX_MODEL_HISTORY])
