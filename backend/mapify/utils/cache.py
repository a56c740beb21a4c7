"""In-memory FIFO cache with TTL expiration.

Process-level cache for hot API key lookups. Bounded by entry count; on
overflow the oldest-inserted entry is evicted, regardless of how recently it
was read. Expired entries are purged lazily when looked up.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """TTL-aware FIFO cache, safe for concurrent use."""

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._cache: OrderedDict[str, tuple[float, V]] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()

    def get_with_timestamp(self, key: str) -> tuple[float, V] | None:
        """Return ``(inserted_at, value)`` or None if absent or expired."""
        with self._lock:
            item = self._cache.get(key)
            if item is None:
                return None
            if self._clock() - item[0] >= self._ttl:
                del self._cache[key]
                return None
            return item

    def get(self, key: str) -> V | None:
        item = self.get_with_timestamp(key)
        return item[1] if item is not None else None

    def set(self, key: str, value: V) -> float:
        """Insert or overwrite ``key``; returns the insertion timestamp.

        Overwriting moves the key to the newest position.
        """
        with self._lock:
            if key in self._cache:
                del self._cache[key]
            elif len(self._cache) >= self._max_size:
                self._cache.popitem(last=False)
            inserted_at = self._clock()
            self._cache[key] = (inserted_at, value)
            return inserted_at

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl_seconds(self) -> float:
        return self._ttl
