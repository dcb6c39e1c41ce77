"""Cache stores: key scheme, per-entry TTL, copy-on-read and Redis error mapping."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from swapi_aggregator.cache import (
    RedisCacheStore,
    TTLCacheStore,
    build_cache_store,
    cache_key,
)
from swapi_aggregator.errors import CacheUnavailable


class FakeClock:
    def __init__(self, t: float = 1_000.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


def test_cache_key_discriminators():
    assert cache_key("films", "all") == "films_all"
    assert cache_key("films", "page_3") == "films_page_3"
    assert cache_key("people", 1) == "people_1"
    # identical logical request -> identical key
    assert cache_key("films", "all") == cache_key("films", "all")


@pytest.mark.asyncio
async def test_ttl_store_honors_per_entry_ttl():
    clock = FakeClock()
    store = TTLCacheStore(maxsize=10, timer=clock)

    await store.set("short", {"v": 1}, 5)
    await store.set("long", {"v": 2}, 60)
    assert await store.get("short") == {"v": 1}

    clock.t += 10
    assert await store.get("short") is None
    assert await store.get("long") == {"v": 2}

    clock.t += 100
    assert await store.get("long") is None


@pytest.mark.asyncio
async def test_ttl_store_returns_copies():
    """Mutating a returned value never leaks back into the cache."""
    store = TTLCacheStore(maxsize=10)
    await store.set("films_all", [{"title": "A New Hope"}], 60)

    got = await store.get("films_all")
    got[0]["title"] = "mutated"
    got.append({"title": "extra"})

    assert await store.get("films_all") == [{"title": "A New Hope"}]


@pytest.mark.asyncio
async def test_ttl_store_stats_and_capacity():
    store = TTLCacheStore(maxsize=2)
    await store.set("a", 1, 60)
    await store.set("b", 2, 60)
    await store.set("c", 3, 60)

    assert await store.get("zzz") is None
    assert await store.get("c") == 3
    s = store.stats()
    assert s["size"] == 2
    assert s["maxsize"] == 2
    assert s["hits"] == 1
    assert s["misses"] == 1


class FakeRedis:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.data = {}
        self.ttls = {}

    async def get(self, key):
        if self.fail:
            raise RedisConnectionError("refused")
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        if self.fail:
            raise RedisConnectionError("refused")
        self.data[key] = value.encode()
        self.ttls[key] = ttl

    async def aclose(self):
        return None


@pytest.mark.asyncio
async def test_redis_store_roundtrip_uses_setex():
    fake = FakeRedis()
    store = RedisCacheStore(fake)

    await store.set("films_1", {"title": "A New Hope"}, 30)
    assert fake.ttls["films_1"] == 30
    assert await store.get("films_1") == {"title": "A New Hope"}
    assert await store.get("films_2") is None
    assert store.stats() is None


@pytest.mark.asyncio
async def test_redis_store_errors_become_cache_unavailable():
    store = RedisCacheStore(FakeRedis(fail=True))

    with pytest.raises(CacheUnavailable):
        await store.get("films_all")
    with pytest.raises(CacheUnavailable):
        await store.set("films_all", [1], 30)


def test_build_cache_store_by_backend():
    assert build_cache_store("memory", maxsize=4, redis_url="").name == "memory"
    assert (
        build_cache_store("REDIS", maxsize=4, redis_url="redis://localhost:6379/0").name
        == "redis"
    )
    with pytest.raises(ValueError):
        build_cache_store("memcached", maxsize=4, redis_url="")
