"""
Expiring caches used in front of the access store.

Both implementations share the `AsyncCache` interface so they can be injected into the resolvers interchangeably.
`TTLCache` lives in process memory, `RedisCache` is shared between every process pointed at the same redis.
"""

from __future__ import annotations

import datetime
import time
from typing import Any, Callable, Generic, Hashable, Optional, Protocol, TypeVar

import cachingutils
import cachingutils.redis
import redis.asyncio
import redis.exceptions

from bottrapper.log import get_logger


KT = TypeVar("KT", bound=Hashable)
VT = TypeVar("VT")

DEFAULT_TIMEOUT = datetime.timedelta(minutes=5)

log = get_logger(__name__)


class AsyncCache(Protocol[KT, VT]):
    """A key to value store where values expire after a fixed timeout."""

    async def get(self, key: KT, default: Optional[VT] = None) -> Optional[VT]: ...

    async def set(self, key: KT, value: VT) -> None: ...

    async def delete(self, key: KT) -> None: ...

    async def clear(self) -> None: ...


class TTLCache(Generic[KT, VT]):
    """
    An in-memory cache with a fixed time to live for each entry.

    Entries are kept in a `cachingutils.MemoryCache`, which evicts them once the timeout has passed.
    Each entry also records its deadline on `clock`, so an entry is never served past that deadline
    even when `clock` is not the wall clock.
    """

    def __init__(
        self,
        name: str,
        *,
        timeout: datetime.timedelta = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._timeout = timeout.total_seconds()
        self._clock = clock
        self._cache: cachingutils.MemoryCache[KT, tuple[VT, float]] = self._new_cache()

    def _new_cache(self) -> cachingutils.MemoryCache:
        return cachingutils.MemoryCache(timeout=max(1, int(self._timeout)))

    async def get(self, key: KT, default: Optional[VT] = None) -> Optional[VT]:
        """Get the value for `key`, or `default` if it is missing or expired."""
        entry = self._cache.get(key)
        if entry is None:
            return default
        value, expires_at = entry
        if self._clock() >= expires_at:
            await self.delete(key)
            log.trace("Cache %s: entry for %r expired", self.name, key)
            return default
        return value

    async def set(self, key: KT, value: VT) -> None:
        """Set `key` to `value`, restarting its time to live."""
        self._cache.set(key, (value, self._clock() + self._timeout))

    async def delete(self, key: KT) -> None:
        """Remove the entry for `key` if it exists."""
        try:
            del self._cache[key]
        except KeyError:
            pass

    async def clear(self) -> None:
        """Remove every entry."""
        self._cache = self._new_cache()


class RedisCache(Generic[KT, VT]):
    """
    A redis-backed cache with the same semantics as `TTLCache`.

    Reads and writes go through `cachingutils.redis.AsyncRedisCache`, and expiry is delegated to redis
    so that every process sees the same deadline.
    A redis failure is logged and treated as a cache miss, the store stays the source of truth.
    """

    def __init__(
        self,
        prefix: str,
        *,
        session: redis.asyncio.Redis,
        timeout: datetime.timedelta = DEFAULT_TIMEOUT,
    ) -> None:
        self.prefix = prefix.rstrip(":") + ":"
        self._rediscache = cachingutils.redis.AsyncRedisCache(prefix=self.prefix, session=session)
        self._redis = session
        self._redis_timeout = max(1, int(timeout.total_seconds()))

    def _key(self, key: KT) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: KT, default: Optional[VT] = None) -> Optional[VT]:
        """Get the value for `key`, or `default` if it is missing or expired."""
        try:
            value: Any = await self._rediscache.get(str(key), default=default)
        except redis.exceptions.RedisError as e:
            log.warning("Could not read %s from redis, treating it as a miss: %s", self._key(key), e)
            return default
        return value

    async def set(self, key: KT, value: VT) -> None:
        """Set `key` to `value`, restarting its time to live."""
        try:
            await self._rediscache.set(str(key), value=value, timeout=self._redis_timeout)
        except redis.exceptions.RedisError as e:
            log.warning("Could not write %s to redis: %s", self._key(key), e)

    async def delete(self, key: KT) -> None:
        """Remove the entry for `key` if it exists."""
        try:
            await self._redis.delete(self._key(key))
        except redis.exceptions.RedisError as e:
            # a stale entry can now outlive this call until its expiry
            log.error("Could not delete %s from redis: %s", self._key(key), e)

    async def clear(self) -> None:
        """Remove every entry under this cache's prefix."""
        try:
            keys = [key async for key in self._redis.scan_iter(match=self.prefix + "*")]
            if keys:
                await self._redis.delete(*keys)
        except redis.exceptions.RedisError as e:
            log.error("Could not clear the %s redis cache: %s", self.prefix, e)
