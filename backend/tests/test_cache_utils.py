import asyncio
import json

import pytest
import redis

import cache_utils
from cache_utils import MemoryCache, RedisCache, create_cache, get_cache, set_cache
from config import settings
from services.stats_api import TYPE_STATS_KEY, StatsAggregator
from services.tour_api import TourApiClient
from conftest import FakeSession, envelope, make_response


class FakeRedis:
    """decode_responses=True 인 redis.Redis 처럼 문자열을 저장하는 대용품"""

    def __init__(self):
        self.store = {}
        self.expiry = {}

    def set(self, key, value, ex=None):
        if ex is not None and ex <= 0:
            raise redis.ResponseError("invalid expire time in 'set' command")
        self.store[key] = value
        self.expiry[key] = ex
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    def exists(self, key):
        return 1 if key in self.store else 0

    def flushdb(self):
        self.store.clear()
        return True


class BrokenRedis:
    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    set = get = delete = exists = flushdb = _fail


@pytest.fixture
def clock():
    return [0.0]


@pytest.fixture
def memory(clock):
    return MemoryCache(timer=lambda: clock[0])


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def redis_cache(fake_redis):
    return RedisCache(fake_redis)


# -------------------------------------------------
# MemoryCache
# -------------------------------------------------

def test_memory_cache_expires(memory, clock):
    assert memory.set("k", [1], expire=10) is True

    clock[0] = 9.9
    assert memory.get("k") == [1]

    clock[0] = 10.0
    assert memory.get("k") is None
    assert not memory.exists("k")


def test_memory_cache_none_means_no_expiry(memory, clock):
    memory.set("k", {"a": 1})

    clock[0] = 1e7
    assert memory.get("k") == {"a": 1}


@pytest.mark.parametrize("expire", [0, -5])
def test_memory_cache_non_positive_expire_is_not_stored(memory, clock, expire):
    memory.set("k", [1], expire=60)

    assert memory.set("k", [2], expire=expire) is False

    assert memory.get("k") is None
    clock[0] = 1e7
    assert memory.get("k") is None


def test_memory_cache_delete_and_clear(memory):
    memory.set("a", 1)
    memory.set("b", 2)

    assert memory.delete("a") is True
    assert memory.delete("a") is False
    assert memory.clear() is True
    assert memory.get("b") is None


def test_memory_cache_evicts_least_recently_used(clock):
    cache = MemoryCache(max_size=2, timer=lambda: clock[0])
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.get("c") == 3


# -------------------------------------------------
# RedisCache
# -------------------------------------------------

def test_redis_cache_stores_json(redis_cache, fake_redis):
    value = [{"area_code": "1", "area_name": "서울", "count": 1200}]

    assert redis_cache.set("stats:region", value, expire=3600) is True

    assert json.loads(fake_redis.store["stats:region"]) == value
    assert "서울" in fake_redis.store["stats:region"]
    assert fake_redis.expiry["stats:region"] == 3600
    assert redis_cache.get("stats:region") == value
    assert redis_cache.exists("stats:region")


def test_redis_cache_none_means_no_expiry(redis_cache, fake_redis):
    redis_cache.set("k", {"a": 1})

    assert fake_redis.expiry["k"] is None


@pytest.mark.parametrize("expire", [0, -5])
def test_redis_cache_non_positive_expire_is_not_stored(redis_cache, fake_redis, expire):
    redis_cache.set("k", [1], expire=60)

    assert redis_cache.set("k", [2], expire=expire) is False

    assert redis_cache.get("k") is None
    assert "k" not in fake_redis.store


def test_redis_cache_miss_and_delete(redis_cache):
    assert redis_cache.get("missing") is None
    assert redis_cache.delete("missing") is False

    redis_cache.set("k", [1])
    assert redis_cache.delete("k") is True
    assert not redis_cache.exists("k")


def test_redis_cache_non_json_value_is_miss(redis_cache, fake_redis):
    fake_redis.store["k"] = "not json"

    assert redis_cache.get("k") is None


def test_redis_cache_errors_degrade_to_miss(caplog):
    cache = RedisCache(BrokenRedis())

    with caplog.at_level("ERROR"):
        assert cache.get("k") is None
        assert cache.set("k", [1], expire=60) is False
        assert cache.delete("k") is False
        assert cache.exists("k") is False
        assert cache.clear() is False

    assert "Redis get error" in caplog.text


def test_stats_round_trip_through_redis(redis_cache, sleeps):
    session = FakeSession(routes={
        "areaBasedList2": lambda params: make_response(body=envelope(
            [], total_count={"12": 3, "39": 1}.get(params.get("contentTypeId"), 0), num_of_rows=1
        )),
    })
    client = TourApiClient(api_key="test-key", session=session, sleep=sleeps.append)
    aggregator = StatsAggregator(client, redis_cache, ttl=60)

    first = asyncio.run(aggregator.get_type_stats())
    call_count = len(session.calls)
    second = asyncio.run(aggregator.get_type_stats())

    assert second == first
    assert [(s.content_type_id, s.percentage) for s in second] == [("12", 75.0), ("39", 25.0)]
    assert len(session.calls) == call_count
    assert redis_cache.redis.expiry[TYPE_STATS_KEY] == 60


def test_stats_with_zero_ttl_are_not_cached(memory, sleeps):
    session = FakeSession(routes={
        "areaBasedList2": lambda params: make_response(body=envelope([], total_count=5, num_of_rows=1)),
    })
    client = TourApiClient(api_key="test-key", session=session, sleep=sleeps.append)
    aggregator = StatsAggregator(client, memory, ttl=0)

    asyncio.run(aggregator.get_type_stats())
    call_count = len(session.calls)
    asyncio.run(aggregator.get_type_stats())

    assert len(session.calls) == call_count * 2


# -------------------------------------------------
# factory
# -------------------------------------------------

def test_create_cache_backends():
    assert isinstance(create_cache("memory"), MemoryCache)
    assert isinstance(create_cache("redis"), RedisCache)


def test_create_cache_unknown_backend():
    with pytest.raises(ValueError):
        create_cache("bogus")


def test_get_cache_uses_configured_backend(monkeypatch):
    monkeypatch.setattr(settings, "CACHE_BACKEND", "memory")
    monkeypatch.setattr(cache_utils, "_cache", None)

    cache = get_cache()

    assert isinstance(cache, MemoryCache)
    assert get_cache() is cache


def test_set_cache_replaces_instance(monkeypatch):
    monkeypatch.setattr(cache_utils, "_cache", None)
    replacement = MemoryCache()

    set_cache(replacement)

    assert get_cache() is replacement
