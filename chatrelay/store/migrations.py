"""Schema-versioned serialization for persisted state.

Stored data is wrapped in an envelope ``{"version": n, "data": ...}``.
Data without an envelope is treated as version 0. Each schema registers one
upgrade function per version step; loading applies them in order until the
current version is reached.
"""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Upgrade = Callable[[Any], Any]


class SchemaVersionError(Exception):
    """Raised when stored data cannot be upgraded to the current schema."""

    pass


class SchemaMigrator:
    """Wraps and unwraps versioned data for one named schema.

    Attributes:
        name: Schema name used in log and error messages.
        version: Current schema version.
    """

    def __init__(self, name: str, version: int, upgrades: dict[int, Upgrade]) -> None:
        missing = [v for v in range(version) if v not in upgrades]
        if missing:
            raise ValueError(f"Schema {name!r} has no upgrade from version(s) {missing}")
        self.name = name
        self.version = version
        self._upgrades = upgrades

    def wrap(self, data: Any) -> dict[str, Any]:
        return {"version": self.version, "data": data}

    def unwrap(self, raw: Any) -> Any:
        """Return the payload of ``raw`` upgraded to the current version.

        Args:
            raw: Envelope as stored, or legacy unversioned data.

        Returns:
            Data in the current schema.

        Raises:
            SchemaVersionError: If the data comes from a newer schema.
        """
        if isinstance(raw, dict) and "version" in raw and "data" in raw:
            version = raw["version"]
            data = raw["data"]
        else:
            version = 0
            data = raw

        if not isinstance(version, int) or version < 0:
            raise SchemaVersionError(f"{self.name}: invalid schema version {version!r}")
        if version > self.version:
            raise SchemaVersionError(
                f"{self.name}: stored version {version} is newer than supported {self.version}"
            )

        while version < self.version:
            logger.info(f"Upgrading {self.name} from version {version} to {version + 1}")
            data = self._upgrades[version](data)
            version += 1

        return data


# --------- settings --------- #


def _settings_v0_to_v1(data: Any) -> dict[str, Any]:
    """Move the legacy single knowledge document into the file list."""
    data = dict(data) if isinstance(data, dict) else {}
    content = data.pop("knowledgeBaseContent", None)
    filename = data.pop("knowledgeFileName", None)
    files = list(data.get("knowledgeBaseFiles") or [])
    if content:
        files.append(
            {
                "id": "legacy-knowledge",
                "filename": filename or "knowledge.txt",
                "content": content,
                "size": len(content.encode("utf-8")),
                "uploadTime": data.get("lastUpdated", 0),
            }
        )
    data["knowledgeBaseFiles"] = files
    return data


def _settings_v1_to_v2(data: dict[str, Any]) -> dict[str, Any]:
    data = dict(data)
    data.setdefault("knowledgeBaseUrls", [])
    data.setdefault("revision", 0)
    return data


SETTINGS_SCHEMA = SchemaMigrator(
    "settings",
    version=2,
    upgrades={0: _settings_v0_to_v1, 1: _settings_v1_to_v2},
)


# --------- client-side message log --------- #


def _is_valid_message(msg: Any) -> bool:
    return (
        isinstance(msg, dict)
        and isinstance(msg.get("id"), str)
        and isinstance(msg.get("role"), str)
        and isinstance(msg.get("content"), str)
        and isinstance(msg.get("timestamp"), int | float)
    )


def _messages_v0_to_v1(data: Any) -> list[dict[str, Any]]:
    """Drop malformed messages from an unversioned message list."""
    if isinstance(data, dict):
        data = data.get("messages")
    if not isinstance(data, list):
        logger.warning("Message log is not a list, starting empty")
        return []
    return [msg for msg in data if _is_valid_message(msg)]


MESSAGES_SCHEMA = SchemaMigrator("messages", version=1, upgrades={0: _messages_v0_to_v1})


# --------- client-side chat history --------- #


def _history_v0_to_v1(data: Any) -> list[dict[str, Any]]:
    """Drop history records without an id or a message list."""
    if not isinstance(data, list):
        return []
    return [
        record
        for record in data
        if isinstance(record, dict)
        and isinstance(record.get("id"), str)
        and isinstance(record.get("messages"), list)
    ]


HISTORY_SCHEMA = SchemaMigrator("history", version=1, upgrades={0: _history_v0_to_v1})
