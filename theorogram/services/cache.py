"""
In-memory TTL cache for the read path.

Owned by whoever builds it and passed in explicitly. The clock is injectable
so expiry can be tested without sleeping.
"""

import threading
import time
from typing import Any, Callable

from theorogram.config.settings import settings


def theory_key(theory_id: str) -> str:
    return f"theory:{theory_id}"


THEORIES_LIST_PREFIX = "theories:list"


class MemoryCache:
    def __init__(
        self,
        default_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = settings.cache_ttl_seconds if default_ttl is None else default_ttl
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_pattern(self, pattern: str) -> int:
        """Drop every key containing *pattern*. Returns how many were dropped."""
        with self._lock:
            doomed = [k for k in self._entries if pattern in k]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def invalidate_theory(self, theory_id: str) -> None:
        self.delete(theory_key(theory_id))
        self.invalidate_pattern(THEORIES_LIST_PREFIX)
