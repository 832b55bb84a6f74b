"""An in-memory key/value cache with per-key expiry."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

MISSING_TTL = -2


class Cache:
    """Values that expire a given number of seconds after being set."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> tuple[Any, float] | None:
        entry = self._entries.get(key)
        if entry is not None and entry[1] <= self._clock():
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> Any:
        """Return the cached value, or None when absent or expired."""
        with self._lock:
            entry = self._live(key)
            return None if entry is None else entry[0]

    def set(self, key: str, value: Any, expire: int) -> None:
        """Store a value that lives for ``expire`` seconds."""
        if expire <= 0:
            raise ValueError("expire must be a positive number of seconds")
        with self._lock:
            self._entries[key] = (value, self._clock() + expire)

    def delete(self, key: str) -> bool:
        """Remove a key; return whether it was present."""
        with self._lock:
            return self._live(key) is not None and self._entries.pop(key, None) is not None

    def ttl(self, key: str) -> int:
        """Seconds left before the key expires, or -2 when it is absent."""
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return MISSING_TTL
            return int(entry[1] - self._clock() + 0.5)