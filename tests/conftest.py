# --- keep this shim at the very top ---
import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
# --------------------------------------

# Never start the sync worker or reach for Redis from tests
os.environ.setdefault("SYNC_WORKER_ENABLED", "0")
os.environ.setdefault("CACHE_BACKEND", "memory")

import asyncio  # noqa: E402
import math  # noqa: E402
from typing import Any, Dict, List, Optional, Set  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
import respx  # noqa: E402

from swapi_aggregator.cache import TTLCacheStore  # noqa: E402
from swapi_aggregator.clients import SwapiClient  # noqa: E402
from swapi_aggregator.errors import UpstreamUnavailable  # noqa: E402
from swapi_aggregator.schemas import Envelope  # noqa: E402
from swapi_aggregator.service import StarWarsService  # noqa: E402

BASE_URL = "https://swapi.test/api"
PAGE_SIZE = 10


def make_items(collection: str, n: int, **fields: Any) -> List[Dict[str, Any]]:
    """Build ``n`` SWAPI-shaped entities with canonical urls and ``name``s."""
    return [
        {
            "name": f"{collection}-{i:03d}",
            "url": f"{BASE_URL}/{collection}/{i}/",
            **fields,
        }
        for i in range(1, n + 1)
    ]


def envelope_json(
    collection: str, items: List[Dict[str, Any]], page: int, page_size: int = PAGE_SIZE
) -> Dict[str, Any]:
    """The upstream JSON body for ``page`` of ``items``."""
    total_pages = max(1, math.ceil(len(items) / page_size))
    start = (page - 1) * page_size
    nxt = f"{BASE_URL}/{collection}/?page={page + 1}" if page < total_pages else None
    prev = f"{BASE_URL}/{collection}/?page={page - 1}" if page > 1 else None
    return {
        "count": len(items),
        "next": nxt,
        "previous": prev,
        "results": items[start : start + page_size],
    }


class FakeFetcher:
    """In-memory ``fetch_page`` double that records concurrency and calls.

    Args:
        data: collection -> full item list.
        delays: page -> seconds to sleep before answering (reorders completion).
        fail_pages: pages that raise ``UpstreamUnavailable``.
    """

    def __init__(
        self,
        data: Dict[str, List[Dict[str, Any]]],
        *,
        page_size: int = PAGE_SIZE,
        delays: Optional[Dict[int, float]] = None,
        fail_pages: Optional[Set[int]] = None,
    ) -> None:
        self.data = data
        self.page_size = page_size
        self.delays = delays or {}
        self.fail_pages = fail_pages or set()
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_page(self, collection: str, page: int = 1) -> Envelope:
        self.calls.append((collection, page))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(page, 0))
            if page in self.fail_pages:
                raise UpstreamUnavailable(f"{collection} page {page} boom")
            body = envelope_json(
                collection, self.data[collection], page, self.page_size
            )
            return Envelope.model_validate(body)
        finally:
            self.in_flight -= 1


@pytest.fixture
def store() -> TTLCacheStore:
    return TTLCacheStore(maxsize=128)


@pytest.fixture
def respx_mocked():
    """respx router for mocking httpx requests against ``BASE_URL``."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture
def mock_collections(respx_mocked):
    """Install page routes serving ``{collection: items}`` with the upstream envelope.

    Returns:
        A function(data: dict) -> dict of per-collection call counters.
    """

    def _install(data: Dict[str, List[Dict[str, Any]]]) -> Dict[str, int]:
        calls = {c: 0 for c in data}
        for collection, items in data.items():

            def _router(request, collection=collection, items=items):
                calls[collection] += 1
                page = int(request.url.params.get("page", "1"))
                return httpx.Response(200, json=envelope_json(collection, items, page))

            respx_mocked.get(f"/{collection}/").mock(side_effect=_router)
        return calls

    return _install


@pytest_asyncio.fixture
async def client():
    async with SwapiClient(BASE_URL, timeout=1.0) as c:
        yield c


@pytest_asyncio.fixture
async def service(client, store):
    """Service over the mocked upstream and an in-memory store (no retry delay)."""
    yield StarWarsService(
        client,
        store,
        ttl_seconds=60,
        concurrency=3,
        page_size=PAGE_SIZE,
        sync_attempts=2,
        sync_backoff=0,
    )
