"""Bounded-concurrency walk over every page of an upstream collection."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Protocol

from .errors import UpstreamMalformed
from .schemas import Envelope

log = logging.getLogger(__name__)

Entity = Dict[str, Any]
Predicate = Callable[[Entity], bool]


class PageFetcher(Protocol):
    async def fetch_page(self, collection: str, page: int = 1) -> Envelope: ...


def _chunks(pages: List[int], size: int) -> List[List[int]]:
    return [pages[i : i + size] for i in range(0, len(pages), size)]


class BoundedPaginator:
    """Fetch all pages of a collection, at most ``concurrency`` at a time.

    Page 1 is fetched alone to learn ``count`` and the page size; the remaining
    pages are fetched in chunks of ``concurrency`` and each chunk is awaited
    in full before the next starts. Results are merged in page order.
    """

    def __init__(
        self, fetcher: PageFetcher, *, concurrency: int = 5, page_size: int = 10
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.fetcher = fetcher
        self.concurrency = concurrency
        self.page_size = page_size

    def _discover_page_size(self, first: Envelope) -> int:
        # A full first page (one that has a successor) is the upstream page size.
        if first.next and first.results:
            return len(first.results)
        return self.page_size

    async def fetch_all(
        self, collection: str, predicate: Optional[Predicate] = None
    ) -> List[Entity]:
        """Return every entity of ``collection`` in page-ascending order.

        Args:
            collection: Upstream collection key.
            predicate: Optional filter applied to each page before merging.

        Returns:
            The merged (optionally filtered) entity list.

        Raises:
            UpstreamUnavailable: Any page fetch failed (no partial result).
            UpstreamMalformed: Any page was undecodable, or the envelope
                advertises items but page 1 is empty.
        """
        first = await self.fetcher.fetch_page(collection, 1)
        if first.count > 0 and not first.results:
            raise UpstreamMalformed(
                f"{collection}: count={first.count} but page 1 has no results"
            )

        page_size = self._discover_page_size(first)
        total_pages = max(1, math.ceil(first.count / page_size))

        def keep(results: List[Entity]) -> List[Entity]:
            if predicate is None:
                return results
            return [item for item in results if predicate(item)]

        merged: List[Entity] = keep(first.results)
        chunks = _chunks(list(range(2, total_pages + 1)), self.concurrency)
        for chunk in chunks:
            # gather() preserves argument order, so completion order is irrelevant
            envelopes = await asyncio.gather(
                *(self.fetcher.fetch_page(collection, p) for p in chunk)
            )
            for env in envelopes:
                merged.extend(keep(env.results))

        log.info(
            "paginator.fetch_all collection=%s count=%d pages=%d chunks=%d "
            "concurrency=%d returned=%d filtered=%s",
            collection,
            first.count,
            total_pages,
            len(chunks),
            self.concurrency,
            len(merged),
            predicate is not None,
        )
        return merged
