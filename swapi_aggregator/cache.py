"""Cache store capability and its two backends.

Components never reach for a global cache: a ``CacheStore`` is built once
(``build_cache_store``) and passed into whatever needs it. Values are stored
JSON-serialized so every read hands back a fresh copy.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from cachetools import TLRUCache
from redis.asyncio import Redis
from redis.exceptions import RedisError

from .errors import CacheUnavailable

log = logging.getLogger(__name__)


def cache_key(collection: str, discriminator: Any) -> str:
    """Build the deterministic key ``<collection>_<discriminator>``.

    Discriminators are ``"all"``, ``"page_<n>"`` or an entity id.
    """
    return f"{collection}_{discriminator}"


class CacheStore(ABC):
    """Async key-value store with per-entry TTL.

    Both operations may raise ``CacheUnavailable``.
    """

    name = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or ``None`` if absent/expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""

    def stats(self) -> Optional[Dict[str, int]]:
        """Size and hit/miss counters, when the backend tracks them locally."""
        return None

    async def close(self) -> None:
        return None


def _expires_at(_key: str, entry: tuple, now: float) -> float:
    ttl, _payload = entry
    return now + ttl


class TTLCacheStore(CacheStore):
    """In-process store on ``cachetools.TLRUCache`` (per-entry TTL, LRU capped)."""

    name = "memory"

    def __init__(self, maxsize: int, timer: Callable[[], float] = time.monotonic) -> None:
        self._cache = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=timer)
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(entry[1])

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._cache[key] = (ttl_seconds, json.dumps(value))

    def stats(self) -> Dict[str, int]:
        return {
            "size": len(self._cache),
            "maxsize": int(self._cache.maxsize),
            "hits": self._hits,
            "misses": self._misses,
        }


class RedisCacheStore(CacheStore):
    """Shared store on Redis (``SETEX`` + JSON)."""

    name = "redis"

    def __init__(self, redis: Redis) -> None:
        self.redis = redis

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        return cls(Redis.from_url(url))

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.redis.get(key)
        except (RedisError, OSError) as exc:
            raise CacheUnavailable(f"redis get failed for {key!r}: {exc}") from exc
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self.redis.setex(key, max(1, int(ttl_seconds)), json.dumps(value))
        except (RedisError, OSError) as exc:
            raise CacheUnavailable(f"redis set failed for {key!r}: {exc}") from exc

    async def close(self) -> None:
        try:
            await self.redis.aclose()
        except (RedisError, OSError) as exc:
            log.debug("cache.redis close_failed error=%r", exc)


def build_cache_store(backend: str, *, maxsize: int, redis_url: str) -> CacheStore:
    """Build the configured store (``"memory"`` or ``"redis"``)."""
    backend = backend.lower()
    if backend == "memory":
        store: CacheStore = TTLCacheStore(maxsize=maxsize)
    elif backend == "redis":
        store = RedisCacheStore.from_url(redis_url)
    else:
        raise ValueError(f"unknown CACHE_BACKEND {backend!r}")
    log.info("cache.store backend=%s", store.name)
    return store
