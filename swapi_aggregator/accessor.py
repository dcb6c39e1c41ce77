"""Cache-aside accessor: get-or-compute-and-store against a ``CacheStore``."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from . import metrics
from .cache import CacheStore
from .errors import CacheUnavailable, NotFound

log = logging.getLogger(__name__)

T = TypeVar("T")


class CacheAside:
    """Wrap an async compute with a read-through cache lookup.

    No request coalescing: concurrent misses on one key each run ``compute``
    and the last write wins. Store outages degrade to always-compute.
    """

    def __init__(self, store: CacheStore) -> None:
        self.store = store

    async def _lookup(self, key: str):
        try:
            return await self.store.get(key)
        except CacheUnavailable as exc:
            metrics.record_cache_error("get")
            log.warning("cache.get_failed key=%s error=%s", key, exc)
            return None

    async def _store(self, key: str, value, ttl_seconds: int) -> None:
        try:
            await self.store.set(key, value, ttl_seconds)
        except CacheUnavailable as exc:
            metrics.record_cache_error("set")
            log.warning("cache.set_failed key=%s error=%s", key, exc)

    async def _compute(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        value = await compute()
        if not value:
            # never cache an empty marker
            log.info("cache.compute_empty key=%s", key)
            raise NotFound(f"no data for {key!r}")
        return value

    async def get_or_compute(
        self, key: str, ttl_seconds: int, compute: Callable[[], Awaitable[T]]
    ) -> T:
        """Return the cached value for ``key`` or compute, store and return it.

        Args:
            key: Deterministic cache key (see ``cache.cache_key``).
            ttl_seconds: TTL for a freshly computed value.
            compute: Zero-arg coroutine factory, awaited at most once.

        Raises:
            NotFound: ``compute`` returned an empty/absent result.
            Exception: Anything ``compute`` raises propagates unchanged and
                nothing is stored.
        """
        cached = await self._lookup(key)
        if cached is not None:
            metrics.record_cache_lookup(hit=True)
            log.debug("cache.hit key=%s", key)
            return cached

        metrics.record_cache_lookup(hit=False)
        log.debug("cache.miss key=%s", key)
        value = await self._compute(key, compute)
        await self._store(key, value, ttl_seconds)
        return value

    async def refresh(
        self, key: str, ttl_seconds: int, compute: Callable[[], Awaitable[T]]
    ) -> T:
        """Compute unconditionally and overwrite ``key`` (cache warming)."""
        value = await self._compute(key, compute)
        await self._store(key, value, ttl_seconds)
        log.debug("cache.refreshed key=%s", key)
        return value
