"""JSON-file-backed store for the server-side settings mirror.

All writes go through a single lock and bump ``revision``; a writer that
sends the revision it last saw gets a ``SettingsConflictError`` instead of
silently overwriting a newer write.
"""

import json
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from chatrelay.models.schemas import KnowledgeFile, KnowledgeUrl, Settings, SettingsUpdate
from chatrelay.relay.config import RelayConfig, get_relay_config
from chatrelay.store.migrations import SETTINGS_SCHEMA

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class SettingsConflictError(Exception):
    """Raised when an update carries a stale revision."""

    def __init__(self, expected: int, current: int) -> None:
        super().__init__(
            f"Settings were changed by another client (revision {current}, expected {expected})"
        )
        self.expected = expected
        self.current = current


def default_settings_factory(config: RelayConfig) -> Callable[[], Settings]:
    """Build the factory for the hard-coded defaults used on reset."""

    def factory() -> Settings:
        return Settings(
            api_base_url=config.default_base_url,
            system_prompt=config.default_system_prompt,
            temperature=config.default_temperature,
            model_name=config.default_model,
        )

    return factory


class SettingsStore:
    """Persistent settings with single-writer discipline.

    Attributes:
        path: JSON file holding the versioned settings envelope.
    """

    def __init__(self, path: Path, defaults: Callable[[], Settings] = Settings) -> None:
        self.path = Path(path)
        self._defaults = defaults
        self._lock = threading.Lock()
        self._settings = self._load()

    def _load(self) -> Settings:
        """Load settings from disk, or defaults if the file does not exist."""
        if not self.path.exists():
            logger.info(f"No settings file at {self.path}, using defaults")
            return self._defaults()

        with self.path.open("r", encoding="utf-8") as f:
            raw = json.load(f)

        return Settings.model_validate(SETTINGS_SCHEMA.unwrap(raw))

    def _save(self, settings: Settings) -> None:
        """Write settings atomically (write to a temp file, then rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        envelope = SETTINGS_SCHEMA.wrap(settings.model_dump(mode="json", by_alias=True))

        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(envelope, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

    def _commit(self, data: dict[str, Any]) -> Settings:
        # Caller holds self._lock
        data["revision"] = self._settings.revision + 1
        data["last_updated"] = now_ms()
        settings = Settings.model_validate(data)
        self._save(settings)
        self._settings = settings
        return settings.model_copy(deep=True)

    def get(self) -> Settings:
        return self._settings.model_copy(deep=True)

    def update(self, patch: SettingsUpdate) -> Settings:
        """Merge a partial update into the stored settings.

        Fields absent from the patch (or sent as null) keep their values.

        Args:
            patch: Partial settings; ``revision`` is an optional guard.

        Returns:
            The merged settings.

        Raises:
            SettingsConflictError: If ``patch.revision`` is stale.
        """
        changes = {
            k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None
        }
        expected = changes.pop("revision", None)

        with self._lock:
            if expected is not None and expected != self._settings.revision:
                raise SettingsConflictError(expected, self._settings.revision)
            merged = {**self._settings.model_dump(), **changes}
            settings = self._commit(merged)

        logger.info(f"Settings updated ({', '.join(sorted(changes)) or 'no fields'})")
        return settings

    def reset(self) -> Settings:
        """Restore the hard-coded defaults. The revision keeps counting."""
        with self._lock:
            settings = self._commit(self._defaults().model_dump())
        logger.info("Settings reset to defaults")
        return settings

    def add_knowledge_file(self, knowledge_file: KnowledgeFile) -> Settings:
        with self._lock:
            data = self._settings.model_dump()
            data["knowledge_base_files"].append(knowledge_file.model_dump())
            settings = self._commit(data)
        logger.info(f"Added knowledge file: {knowledge_file.filename} ({knowledge_file.size} bytes)")
        return settings

    def remove_knowledge_file(self, file_id: str) -> bool:
        """Remove a knowledge file by id.

        Returns:
            True if a file was removed.
        """
        with self._lock:
            data = self._settings.model_dump()
            remaining = [f for f in data["knowledge_base_files"] if f["id"] != file_id]
            if len(remaining) == len(data["knowledge_base_files"]):
                return False
            data["knowledge_base_files"] = remaining
            self._commit(data)
        return True

    def add_knowledge_url(self, knowledge_url: KnowledgeUrl) -> Settings:
        with self._lock:
            data = self._settings.model_dump()
            data["knowledge_base_urls"].append(knowledge_url.model_dump())
            return self._commit(data)

    def remove_knowledge_url(self, url_id: str) -> bool:
        with self._lock:
            data = self._settings.model_dump()
            remaining = [u for u in data["knowledge_base_urls"] if u["id"] != url_id]
            if len(remaining) == len(data["knowledge_base_urls"]):
                return False
            data["knowledge_base_urls"] = remaining
            self._commit(data)
        return True


# Module-level singleton instance
_settings_store: SettingsStore | None = None


def get_settings_store() -> SettingsStore:
    """Get or create the global settings store.

    Returns:
        The SettingsStore backed by ``RelayConfig.settings_path``.
    """
    global _settings_store
    if _settings_store is None:
        config = get_relay_config()
        _settings_store = SettingsStore(
            config.settings_path,
            defaults=default_settings_factory(config),
        )
    return _settings_store
