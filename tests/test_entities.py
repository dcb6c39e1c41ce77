"""EntityAccessor: id validation, cache-aside by id and NotFound on 404."""

import httpx
import pytest

from swapi_aggregator.accessor import CacheAside
from swapi_aggregator.entities import EntityAccessor
from swapi_aggregator.errors import InvalidArgument, NotFound


@pytest.fixture
def entities(client, store):
    return EntityAccessor(client, CacheAside(store), ttl_seconds=60)


@pytest.mark.asyncio
async def test_get_by_id_fetches_once_then_serves_from_cache(
    entities, respx_mocked, store
):
    route = respx_mocked.get("/people/1/").mock(
        return_value=httpx.Response(
            200,
            json={"name": "Luke Skywalker", "url": "https://swapi.test/api/people/1/"},
        )
    )

    a = await entities.get_by_id("people", "1")
    b = await entities.get_by_id("people", 1)

    assert a == b
    assert a["name"] == "Luke Skywalker"
    assert route.call_count == 1
    assert (await store.get("people_1"))["name"] == "Luke Skywalker"


@pytest.mark.asyncio
async def test_missing_entity_is_not_found_and_not_cached(
    entities, respx_mocked, store
):
    route = respx_mocked.get("/people/404/").mock(
        return_value=httpx.Response(404, json={"detail": "Not found"})
    )

    with pytest.raises(NotFound):
        await entities.get_by_id("people", "404")
    with pytest.raises(NotFound):
        await entities.get_by_id("people", "404")

    assert route.call_count == 2
    assert await store.get("people_404") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["", "   ", None])
async def test_blank_id_is_invalid(entities, bad):
    with pytest.raises(InvalidArgument):
        await entities.get_by_id("people", bad)


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["all", "page_1", "../films", "1/../2", "-3", "²"])
async def test_non_numeric_id_never_reaches_cache_or_upstream(
    entities, respx_mocked, store, bad
):
    await store.set("films_all", [{"title": "A New Hope"}], 60)
    await store.set("films_page_1", [{"title": "A New Hope"}], 60)
    route = respx_mocked.route().mock(return_value=httpx.Response(200))

    with pytest.raises(InvalidArgument):
        await entities.get_by_id("films", bad)
    assert route.call_count == 0
