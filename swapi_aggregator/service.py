"""Query and sync surface consumed by the HTTP layer and the timer.

Wires the client, paginator, cache-aside accessor, aggregator and entity
accessor together from ``Settings`` and exposes:

- list_collection / list_upstream_page / get_entity  (query surface)
- analyze_corpus                                      (opening-crawl analysis)
- sync_all                                            (cache warming, never raises)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from . import metrics
from .accessor import CacheAside
from .aggregator import CollectionAggregator
from .analysis import analyze
from .cache import CacheStore, build_cache_store
from .clients import SwapiClient
from .entities import EntityAccessor
from .errors import InvalidArgument, UpstreamUnavailable
from .filters import KNOWN_COLLECTIONS, EntityFilter
from .pagination import PageRequest
from .paginator import BoundedPaginator
from .schemas import CollectionPage, CorpusAnalysis, SyncOutcome
from .settings import Settings

log = logging.getLogger(__name__)

CORPUS_COLLECTION = "films"
ROSTER_COLLECTION = "people"


class StarWarsService:
    def __init__(
        self,
        client: SwapiClient,
        store: CacheStore,
        *,
        ttl_seconds: int = 3600,
        concurrency: int = 5,
        page_size: int = 10,
        sync_attempts: int = 3,
        sync_backoff: float = 1.0,
        collections: Iterable[str] = KNOWN_COLLECTIONS,
    ) -> None:
        self.client = client
        self.store = store
        self.collections = tuple(collections)
        self.sync_attempts = sync_attempts
        self.sync_backoff = sync_backoff
        accessor = CacheAside(store)
        paginator = BoundedPaginator(client, concurrency=concurrency, page_size=page_size)
        self.aggregator = CollectionAggregator(
            client, paginator, accessor, ttl_seconds=ttl_seconds
        )
        self.entities = EntityAccessor(client, accessor, ttl_seconds=ttl_seconds)
        self._last_sync_ts: float | None = None

    @classmethod
    def from_settings(cls, cfg: Settings) -> "StarWarsService":
        client = SwapiClient(cfg.SWAPI_BASE_URL, timeout=cfg.REQUEST_TIMEOUT)
        store = build_cache_store(
            cfg.CACHE_BACKEND, maxsize=cfg.CACHE_MAXSIZE, redis_url=cfg.REDIS_URL
        )
        return cls(
            client,
            store,
            ttl_seconds=cfg.CACHE_TTL_SECONDS,
            concurrency=cfg.FETCH_CONCURRENCY,
            page_size=cfg.UPSTREAM_PAGE_SIZE,
            sync_attempts=cfg.SYNC_MAX_ATTEMPTS,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
        await self.store.close()

    def _check_collection(self, name: str) -> None:
        if name not in self.collections:
            raise InvalidArgument(
                f"unknown collection {name!r} (known: {', '.join(self.collections)})"
            )

    # ------------------------------------------------------------------
    # Query surface
    # ------------------------------------------------------------------

    async def list_collection(
        self,
        name: str,
        pagination: Optional[PageRequest] = None,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> CollectionPage:
        self._check_collection(name)
        entity_filter = EntityFilter.for_collection(name, filters)
        return await self.aggregator.query(name, pagination, entity_filter)

    async def list_upstream_page(
        self, name: str, page: int, filters: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        self._check_collection(name)
        entity_filter = EntityFilter.for_collection(name, filters)
        return await self.aggregator.upstream_page(name, page, entity_filter)

    async def get_entity(self, name: str, entity_id: Any) -> Dict[str, Any]:
        self._check_collection(name)
        return await self.entities.get_by_id(name, entity_id)

    async def analyze_corpus(self) -> CorpusAnalysis:
        """Word counts and most-mentioned characters over all opening crawls."""
        films, people = await asyncio.gather(
            self.aggregator.fetch_all(CORPUS_COLLECTION),
            self.aggregator.fetch_all(ROSTER_COLLECTION),
        )
        texts = [f.get("opening_crawl") or "" for f in films]
        names = [p.get("name") or "" for p in people]
        result = analyze(texts, names)
        log.info(
            "analysis.opening_crawl films=%d people=%d unique_words=%d top=%s",
            len(films),
            len(people),
            len(result.word_counts),
            result.top_mentioned,
        )
        return result

    # ------------------------------------------------------------------
    # Sync surface
    # ------------------------------------------------------------------

    def last_sync_age(self) -> float | None:
        """Seconds since the last sync_all() finished, or None if never run."""
        if self._last_sync_ts is None:
            return None
        return round(time.time() - self._last_sync_ts, 2)

    async def _refresh_with_retry(self, name: str) -> int:
        # Whole-collection retry; the paginator never returns partial data
        async for attempt in AsyncRetrying(
            wait=wait_exponential(multiplier=self.sync_backoff, max=10),
            stop=stop_after_attempt(self.sync_attempts),
            retry=retry_if_exception_type(UpstreamUnavailable),
            reraise=True,
        ):
            with attempt:
                n = attempt.retry_state.attempt_number
                if n > 1:
                    log.warning("sync.retry collection=%s attempt=%d", name, n)
                items = await self.aggregator.refresh(name)
        return len(items)

    async def sync_all(self) -> Dict[str, SyncOutcome]:
        """Refresh every collection independently; one failure never aborts others.

        Returns:
            Mapping of collection name to its ``SyncOutcome``.
        """
        log.info("sync.start collections=%s", ",".join(self.collections))
        results = await asyncio.gather(
            *(self._refresh_with_retry(c) for c in self.collections),
            return_exceptions=True,
        )

        report: Dict[str, SyncOutcome] = {}
        for name, res in zip(self.collections, results):
            if isinstance(res, BaseException):
                if isinstance(res, asyncio.CancelledError):
                    raise res
                report[name] = SyncOutcome(ok=False, error=f"{type(res).__name__}: {res}")
                log.error("sync.collection_failed collection=%s error=%r", name, res)
            else:
                report[name] = SyncOutcome(ok=True, items=res)
                log.info("sync.collection_ok collection=%s items=%d", name, res)
            metrics.record_sync(name, report[name].ok)

        self._last_sync_ts = time.time()
        failed = sum(1 for o in report.values() if not o.ok)
        log.info("sync.complete ok=%d failed=%d", len(report) - failed, failed)
        return report
