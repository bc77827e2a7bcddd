"""Short-lived cache for aggregates that are expensive to recompute on every request."""
from __future__ import annotations

from threading import RLock
from typing import Callable, Generic, Optional, TypeVar

from cachetools import TTLCache

T = TypeVar("T")


class StatsCache(Generic[T]):
    """TTL cache shared by the threadpool workers serving sync endpoints."""

    def __init__(self, ttl: int, maxsize: int = 16) -> None:
        self._entries: TTLCache[str, T] = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = RLock()

    def fetch(self, key: str, loader: Callable[[], T]) -> T:
        """Return the cached value, computing and storing it on a miss."""

        with self._lock:
            value = self._entries.get(key)
            if value is None:
                value = loader()
                self._entries[key] = value
            return value

    def invalidate(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
