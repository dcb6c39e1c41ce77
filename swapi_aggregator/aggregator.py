"""Collection aggregator: cached merged collections, filtered and re-paginated.

Cache layout (all entries share one TTL):

* ``<collection>_all``      every entity of the collection, unfiltered
* ``<collection>_page_<n>`` results of upstream page ``n``, unfiltered

Filters and pagination are applied on every read, so one upstream payload
serves every filtered/paginated view of it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .accessor import CacheAside
from .cache import cache_key
from .clients import SwapiClient
from .errors import InvalidArgument, NotFound, UpstreamUnavailable
from .filters import MATCH_ALL, EntityFilter
from .pagination import PageRequest, paginate
from .paginator import BoundedPaginator
from .schemas import CollectionPage

log = logging.getLogger(__name__)

Entity = Dict[str, Any]


class CollectionAggregator:
    def __init__(
        self,
        client: SwapiClient,
        paginator: BoundedPaginator,
        accessor: CacheAside,
        *,
        ttl_seconds: int,
    ) -> None:
        self.client = client
        self.paginator = paginator
        self.accessor = accessor
        self.ttl_seconds = ttl_seconds

    async def fetch_all(self, collection: str) -> List[Entity]:
        """Return the whole merged collection via the ``<collection>_all`` entry."""
        if not collection:
            raise InvalidArgument("collection must be non-empty")
        return await self.accessor.get_or_compute(
            cache_key(collection, "all"),
            self.ttl_seconds,
            lambda: self.paginator.fetch_all(collection),
        )

    async def refresh(self, collection: str) -> List[Entity]:
        """Re-walk the upstream collection and overwrite its ``all`` entry."""
        return await self.accessor.refresh(
            cache_key(collection, "all"),
            self.ttl_seconds,
            lambda: self.paginator.fetch_all(collection),
        )

    async def query(
        self,
        collection: str,
        pagination: Optional[PageRequest] = None,
        entity_filter: Optional[EntityFilter] = None,
    ) -> CollectionPage:
        """Return page ``pagination`` of ``collection`` filtered by ``entity_filter``.

        Args:
            collection: Upstream collection key.
            pagination: Page request; ``None`` returns the full filtered set
                with ``meta=None``.
            entity_filter: Predicate; ``None`` or empty matches everything.

        Returns:
            ``CollectionPage`` with the sliced items and pagination metadata.
        """
        entity_filter = entity_filter or MATCH_ALL
        items = await self.fetch_all(collection)
        if entity_filter:
            items = [item for item in items if entity_filter(item)]

        result = paginate(items, pagination)
        log.info(
            "aggregator.query collection=%s filter=%s page=%s per_page=%s "
            "matched=%d returned=%d",
            collection,
            entity_filter.signature(),
            pagination.page if pagination else None,
            pagination.per_page if pagination else None,
            len(items),
            len(result.items),
        )
        return result

    async def upstream_page(
        self,
        collection: str,
        page: int,
        entity_filter: Optional[EntityFilter] = None,
    ) -> List[Entity]:
        """Return the results of upstream page ``page`` (cached per page).

        A page number past the end of the collection (upstream 404) is
        ``NotFound`` rather than an upstream outage.
        """
        if page < 1:
            raise InvalidArgument(f"page must be >= 1, got {page}")

        async def compute() -> List[Entity]:
            try:
                envelope = await self.client.fetch_page(collection, page)
            except UpstreamUnavailable as exc:
                if exc.status == 404:
                    raise NotFound(f"{collection} has no page {page}") from exc
                raise
            return envelope.results

        results = await self.accessor.get_or_compute(
            cache_key(collection, f"page_{page}"), self.ttl_seconds, compute
        )
        entity_filter = entity_filter or MATCH_ALL
        return [item for item in results if entity_filter(item)]
