"""
Result cache keyed by request fingerprint, with a freshness window.
"""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import asdict
from typing import Protocol

import redis

from .models import CacheEntry

logger = logging.getLogger("videodub")

DEFAULT_TTL = 24 * 60 * 60


def generate_cache_key(source: str, target_language: str) -> str:
    """Fingerprint for a request: source identity plus target language.

    For uploads ``source`` is ``"<filename>-<size>"``, so two different files
    sharing a name and size map to the same key.
    """
    return f"translation-{source}-{target_language}"


class CacheStore(Protocol):
    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, key: str, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Unbounded in-process map; lives as long as the process."""

    def __init__(self) -> None:
        self._data: dict[str, CacheEntry] = {}

    def get(self, key: str) -> CacheEntry | None:
        return self._data.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        self._data[key] = entry

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class RedisStore:
    """Entries stored as JSON strings, expiring server-side after ``ttl``."""

    def __init__(self, client: redis.Redis, ttl: float = DEFAULT_TTL, prefix: str = "videodub:") -> None:
        self.client = client
        self.ttl = int(ttl)
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, ttl: float = DEFAULT_TTL) -> "RedisStore":
        client = redis.from_url(url, decode_responses=True)
        client.ping()
        logger.info("Redis cache connected")
        return cls(client, ttl=ttl)

    def get(self, key: str) -> CacheEntry | None:
        raw = self.client.get(self.prefix + key)
        if raw is None:
            return None
        try:
            return CacheEntry(**json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.warning("Dropping unreadable cache entry %s: %s", key, e)
            self.delete(key)
            return None

    def set(self, key: str, entry: CacheEntry) -> None:
        self.client.setex(self.prefix + key, max(self.ttl, 1), json.dumps(asdict(entry)))

    def delete(self, key: str) -> None:
        self.client.delete(self.prefix + key)


class TranslationCache:
    """Cache facade enforcing the freshness window on top of a store.

    Expired entries are evicted lazily when looked up. Writes always
    overwrite; there is no size bound and no LRU.
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.ttl = ttl
        self.clock = clock

    def get(self, key: str) -> CacheEntry | None:
        entry = self.store.get(key)
        if entry is None:
            return None
        if self.clock() - entry.timestamp < self.ttl:
            return entry
        logger.debug("Cache entry expired: %s", key)
        self.store.delete(key)
        return None

    def put(self, key: str, entry: CacheEntry) -> None:
        self.store.set(key, entry)

    def evict(self, key: str) -> None:
        self.store.delete(key)

    def now(self) -> float:
        return self.clock()


def build_cache(backend: str, ttl: float, redis_url: str | None = None) -> TranslationCache:
    """Create the configured cache; falls back to memory if Redis is unusable."""
    if backend == "redis":
        if not redis_url:
            logger.warning("CACHE_BACKEND=redis but REDIS_URL not set - using in-memory cache")
        else:
            try:
                return TranslationCache(RedisStore.from_url(redis_url, ttl=ttl), ttl=ttl)
            except redis.RedisError as e:
                logger.error("Redis connection failed (%s) - using in-memory cache", e)
    elif backend != "memory":
        logger.warning("Unknown CACHE_BACKEND=%r - using in-memory cache", backend)
    return TranslationCache(MemoryStore(), ttl=ttl)
