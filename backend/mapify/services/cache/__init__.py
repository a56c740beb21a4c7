"""API key cache: in-memory FIFO/TTL cache with an optional Redis backend."""

from .service import CacheEntry, InMemoryKeyCache, KeyCache, RedisKeyCache

__all__ = [
    "CacheEntry",
    "InMemoryKeyCache",
    "KeyCache",
    "RedisKeyCache",
]
