"""Short-lived key-value stores backing nonce bookkeeping."""

import threading
from collections.abc import MutableMapping
from typing import Any, Protocol

SESSION_CACHE_KEY = "kialo_cache"


class CacheStore(Protocol):
    """Minimal cache contract; no TTL guarantees are assumed."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class SessionCache:
    """Cache scoped to one user's session.

    Entries live in a single namespace inside the session mapping, so they
    expire with the session and never leak across users. Values must be
    JSON-serialisable.
    """

    def __init__(self, session: MutableMapping[str, Any]) -> None:
        self._session = session

    def _entries(self) -> dict[str, Any]:
        entries = self._session.get(SESSION_CACHE_KEY)
        if not isinstance(entries, dict):
            entries = {}
            self._session[SESSION_CACHE_KEY] = entries
        return entries

    def get(self, key: str) -> Any | None:
        return self._entries().get(key)

    def set(self, key: str, value: Any) -> None:
        entries = self._entries()
        entries[key] = value
        # Reassign so cookie-backed sessions notice the change.
        self._session[SESSION_CACHE_KEY] = entries

    def delete(self, key: str) -> None:
        entries = self._entries()
        entries.pop(key, None)
        self._session[SESSION_CACHE_KEY] = entries

    def clear(self) -> None:
        self._session[SESSION_CACHE_KEY] = {}


class MemoryCache:
    """Process-wide cache for application-scoped entries."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
