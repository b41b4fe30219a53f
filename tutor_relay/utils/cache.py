"""Thread-safe in-memory TTL cache for web search results.

Identical factual questions ("что такое фотосинтез") are common across
students, so search results are kept for a short while instead of
re-querying the search API on every turn.

Usage:
    cache = TTLCache(ttl_seconds=300, max_size=256)
    cache.set(TTLCache.make_key("search", query="..."), snippets)
    snippets = cache.get(key)  # None when missing or expired
"""
from __future__ import annotations

import threading
import time
from typing import Any, Callable


class TTLCache:
    """In-memory cache with TTL expiration and max size eviction.

    A ``ttl_seconds`` of 0 disables the cache: ``set`` becomes a no-op.

    Args:
        ttl_seconds: How long entries live before expiring.
        max_size: Max number of entries before eviction.
        clock: Monotonic time source (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        max_size: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: dict[str, tuple[float, Any]] = {}
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expiry, value = entry
            if self._clock() < expiry:
                return value
            del self._store[key]
        return None

    def set(self, key: str, value: Any) -> None:
        """Store a value; evicts expired entries, then the oldest, when full."""
        if not self.enabled:
            return
        with self._lock:
            if len(self._store) >= self._max_size and key not in self._store:
                now = self._clock()
                self._store = {k: v for k, v in self._store.items() if v[0] > now}
                if len(self._store) >= self._max_size:
                    oldest_key = min(self._store, key=lambda k: self._store[k][0])
                    del self._store[oldest_key]

            self._store[key] = (self._clock() + self._ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    @property
    def size(self) -> int:
        """Current number of entries (including potentially expired)."""
        return len(self._store)

    @staticmethod
    def make_key(prefix: str, **kwargs: Any) -> str:
        """Generate a deterministic cache key from a prefix and keyword args.

        Example:
            >>> TTLCache.make_key("search", query="закон ома", limit=3)
            'search:limit=3&query=закон ома'
        """
        if not kwargs:
            return prefix
        sorted_params = "&".join(f"{k}={v}" for k, v in sorted(kwargs.items()) if v is not None)
        return f"{prefix}:{sorted_params}" if sorted_params else prefix
