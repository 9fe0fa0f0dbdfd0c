"""Optional passphrase gate for the chat page.

Not a security boundary: it only keeps casual visitors from using the
configured API key. A browser that entered the passphrase once is
remembered through NiceGUI's signed per-browser storage. Changing the
passphrase forgets every remembered browser.
"""

import hashlib
import secrets
from collections.abc import MutableMapping
from typing import Any

GRANT_KEY = "access_grant"


def _fingerprint(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class AccessGate:
    """Remembers whether this browser has entered the passphrase."""

    def __init__(self, storage: MutableMapping[str, Any], password: str | None) -> None:
        self._storage = storage
        self._password = password or None

    @property
    def enabled(self) -> bool:
        return self._password is not None

    def is_open(self) -> bool:
        if not self.enabled:
            return True
        return self._storage.get(GRANT_KEY) == _fingerprint(self._password)

    def unlock(self, supplied: str) -> bool:
        """Check a passphrase and remember this browser on success."""
        if not self.enabled:
            return True
        if not secrets.compare_digest(supplied.encode("utf-8"), self._password.encode("utf-8")):
            return False
        self._storage[GRANT_KEY] = _fingerprint(self._password)
        return True

    def lock(self) -> None:
        self._storage.pop(GRANT_KEY, None)
