import datetime

import fakeredis.aioredis
import pytest
import redis.exceptions

from bottrapper.constants import Feature
from bottrapper.utils.caching import RedisCache, TTLCache


TTL = datetime.timedelta(seconds=300)


@pytest.fixture
def cache(clock) -> TTLCache[int, str]:
    return TTLCache("test", timeout=TTL, clock=clock)


@pytest.fixture
async def redis_session():
    session = fakeredis.aioredis.FakeRedis()
    yield session
    await session.aclose()


async def test_missing_key_returns_default(cache):
    assert await cache.get(1) is None
    assert await cache.get(1, "fallback") == "fallback"


async def test_entry_served_until_expiry(cache, clock):
    await cache.set(1, "value")

    clock.advance(299.9)
    assert await cache.get(1) == "value"

    clock.advance(0.1)
    assert await cache.get(1) is None
    assert await cache.get(1, "fallback") == "fallback"


async def test_set_restarts_time_to_live(cache, clock):
    await cache.set(1, "old")
    clock.advance(200)
    await cache.set(1, "new")
    clock.advance(200)

    assert await cache.get(1) == "new"


async def test_delete_and_clear(cache):
    await cache.set(1, "one")
    await cache.set(2, "two")

    await cache.delete(1)
    await cache.delete(3)
    assert await cache.get(1) is None
    assert await cache.get(2) == "two"

    await cache.clear()
    assert await cache.get(2) is None


async def test_falsy_values_are_cached(cache):
    await cache.set(1, frozenset())
    assert await cache.get(1) == frozenset()


async def test_redis_cache_round_trips_values(redis_session):
    cache = RedisCache("bottrapper:guild_features", session=redis_session, timeout=TTL)
    features = frozenset({Feature.TICKETS, Feature.STATISTICS})

    await cache.set(10, features)

    assert await cache.get(10) == features
    assert await cache.get(11) is None
    assert 0 < await redis_session.ttl("bottrapper:guild_features:10") <= 300


async def test_redis_cache_clear_only_touches_its_prefix(redis_session):
    admins = RedisCache("bottrapper:global_admins", session=redis_session, timeout=TTL)
    features = RedisCache("bottrapper:guild_features", session=redis_session, timeout=TTL)
    await admins.set(1, "admin")
    await features.set(1, "features")

    await admins.clear()

    assert await admins.get(1) is None
    assert await features.get(1) == "features"


async def test_redis_cache_delete(redis_session):
    cache = RedisCache("bottrapper:global_admins", session=redis_session, timeout=TTL)
    await cache.set(1, "admin")

    await cache.delete(1)

    assert await cache.get(1) is None


class BrokenRedis:
    async def get(self, *args, **kwargs):
        raise redis.exceptions.ConnectionError("redis is down")

    async def set(self, *args, **kwargs):
        raise redis.exceptions.ConnectionError("redis is down")

    async def delete(self, *args, **kwargs):
        raise redis.exceptions.ConnectionError("redis is down")


async def test_redis_failures_behave_like_misses():
    cache = RedisCache("bottrapper:global_admins", session=BrokenRedis(), timeout=TTL)  # type: ignore[arg-type]

    await cache.set(1, "admin")
    await cache.delete(1)
    assert await cache.get(1, "default") == "default"
