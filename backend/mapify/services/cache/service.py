"""API key cache services.

This module provides an abstract key cache interface with two
implementations: a process-local FIFO/TTL cache (the default) and a
Redis-backed cache shared by every worker of a deployment.

The cache maps a raw API key value to the ``KeyRef`` of its document, so the
search path can skip the collection-group lookup for hot keys.

Consistency: the cache is read-through. A key revoked in the store stays
usable through a cached entry until that entry is invalidated or its TTL
runs out, so staleness is bounded by the TTL.
"""

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import redis.asyncio as redis

from mapify.models import KeyRef
from mapify.utils.cache import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 1000


@dataclass(frozen=True)
class CacheEntry:
    """A cached key lookup."""

    key_value: str
    store_ref: KeyRef
    inserted_at: float


class KeyCache(ABC):
    """Abstract base class for API key caches."""

    @abstractmethod
    async def get(self, key_value: str) -> CacheEntry | None:
        """Return the entry for ``key_value``, or None if absent or expired.

        Expired entries are purged as a side effect.
        """
        pass

    @abstractmethod
    async def put(self, key_value: str, store_ref: KeyRef) -> None:
        """Cache ``store_ref`` for ``key_value``, evicting the oldest entry if full."""
        pass

    @abstractmethod
    async def invalidate(self, key_value: str) -> bool:
        """Drop the entry for ``key_value``.

        Returns:
            True if an entry was removed.
        """
        pass

    async def close(self) -> None:
        pass


class InMemoryKeyCache(KeyCache):
    """Process-local key cache on top of ``TTLCache``."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TTLCache[KeyRef] = TTLCache(
            max_size=max_entries, ttl_seconds=ttl_seconds, clock=clock
        )

    async def get(self, key_value: str) -> CacheEntry | None:
        item = self._cache.get_with_timestamp(key_value)
        if item is None:
            return None
        inserted_at, ref = item
        return CacheEntry(key_value=key_value, store_ref=ref, inserted_at=inserted_at)

    async def put(self, key_value: str, store_ref: KeyRef) -> None:
        self._cache.set(key_value, store_ref)

    async def invalidate(self, key_value: str) -> bool:
        return self._cache.delete(key_value)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key_value: object) -> bool:
        return key_value in self._cache

    @property
    def max_entries(self) -> int:
        return self._cache.max_size

    @property
    def ttl_seconds(self) -> float:
        return self._cache.ttl_seconds


class RedisKeyCache(KeyCache):
    """Redis-based key cache shared across workers.

    Entries live under ``apikey:{sha256(value)}`` with a Redis TTL, so raw
    key values never reach Redis. A sorted set scored by insertion time
    bounds the number of entries: after each insert the oldest members beyond
    ``max_entries`` are popped and their entries deleted. Under concurrent
    inserts the bound may be overshot briefly, never permanently.

    Attributes:
        _client: The Redis async client instance.
        _ttl: Entry TTL in seconds.
    """

    ENTRY_PREFIX = "apikey:"
    INDEX_KEY = "apikey:index"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        client: redis.Redis | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._client: redis.Redis | None = client

    async def connect(self) -> None:
        if self._client is None:
            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _ensure_connected(self) -> redis.Redis:
        if self._client is None:
            await self.connect()
        return self._client  # type: ignore

    @staticmethod
    def digest(key_value: str) -> str:
        return hashlib.sha256(key_value.encode("utf-8")).hexdigest()

    def _entry_key(self, digest: str) -> str:
        return f"{self.ENTRY_PREFIX}{digest}"

    async def get(self, key_value: str) -> CacheEntry | None:
        client = await self._ensure_connected()
        digest = self.digest(key_value)
        try:
            raw = await client.get(self._entry_key(digest))
            if raw is None:
                # Expired in Redis; drop the dangling index member
                await client.zrem(self.INDEX_KEY, digest)
                return None
        except redis.RedisError as e:
            logger.warning(f"[CACHE] Redis read failed, falling back to store: {e}")
            return None
        try:
            payload = json.loads(raw)
            ref = KeyRef.from_path(payload["ref"])
            inserted_at = float(payload["insertedAt"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[CACHE] Dropping malformed Redis entry {digest[:12]}: {e}")
            await self.invalidate(key_value)
            return None
        return CacheEntry(key_value=key_value, store_ref=ref, inserted_at=inserted_at)

    async def put(self, key_value: str, store_ref: KeyRef) -> None:
        client = await self._ensure_connected()
        digest = self.digest(key_value)
        now = time.time()
        payload = json.dumps({"ref": store_ref.path, "insertedAt": now})

        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(self._entry_key(digest), payload, ex=self._ttl)
                pipe.zadd(self.INDEX_KEY, {digest: now})
                pipe.zcard(self.INDEX_KEY)
                results = await pipe.execute()

            overflow = int(results[-1]) - self._max_entries
            if overflow > 0:
                evicted = await client.zpopmin(self.INDEX_KEY, overflow)
                if evicted:
                    await client.delete(*[self._entry_key(member) for member, _ in evicted])
                    logger.debug(f"[CACHE] Evicted {len(evicted)} Redis entries")
        except redis.RedisError as e:
            logger.warning(f"[CACHE] Redis write failed: {e}")

    async def invalidate(self, key_value: str) -> bool:
        client = await self._ensure_connected()
        digest = self.digest(key_value)
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(self._entry_key(digest))
                pipe.zrem(self.INDEX_KEY, digest)
                deleted, _ = await pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"[CACHE] Redis invalidation failed: {e}")
            return False
        return int(deleted) > 0

    @property
    def ttl_seconds(self) -> int:
        return self._ttl
