"""Key-value cache interface and implementations.

Values are opaque strings (serialized JSON); the cache never interprets them.
Redis is used when available with an in-memory fallback for development and
tests.
"""

from __future__ import annotations

import fnmatch
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from cachetools import TLRUCache
from loguru import logger

if TYPE_CHECKING:
    from src.identity_broker.core.services.redis_service import RedisService


class CacheStore(ABC):
    """Abstract interface for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the cached value, or None on a miss or after expiry."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        """Remove keys; missing keys are ignored."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob pattern such as ``test:item:*``.

        Returns:
            Number of keys removed
        """


class InMemoryCacheStore(CacheStore):
    """In-memory cache with per-key TTLs.

    Backed by a ``TLRUCache``, so every write also drops entries that have
    expired, whether or not they were read again.
    """

    def __init__(self, maxsize: int = 10_000, timer=time.monotonic) -> None:
        # Values are stored as (value, ttl_seconds)
        self._data: TLRUCache[str, tuple[str, int]] = TLRUCache(
            maxsize=maxsize, ttu=self._expires_at, timer=timer
        )

    @staticmethod
    def _expires_at(_key: str, entry: tuple[str, int], now: float) -> float:
        return now + entry[1]

    async def get(self, key: str) -> str | None:
        entry = self._data.get(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        # An already-expired write must not leave an older value in place
        self._data.pop(key, None)
        self._data[key] = (value, ttl_seconds)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def delete_pattern(self, pattern: str) -> int:
        self._data.expire()
        matching = [key for key in list(self._data) if fnmatch.fnmatchcase(key, pattern)]
        for key in matching:
            del self._data[key]
        return len(matching)


class RedisCacheStore(CacheStore):
    """Redis-backed cache; every failure surfaces as ``RuntimeError``."""

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        try:
            data = await self._redis.get(key)
        except Exception as e:
            raise RuntimeError(f"Redis get failed: {e}") from e
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return data

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(key, ttl_seconds, value)
        except Exception as e:
            raise RuntimeError(f"Redis set failed: {e}") from e

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self._redis.delete(*keys)
        except Exception as e:
            raise RuntimeError(f"Redis delete failed: {e}") from e

    async def delete_pattern(self, pattern: str) -> int:
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern, count=100)]
            if keys:
                await self._redis.delete(*keys)
            return len(keys)
        except Exception as e:
            raise RuntimeError(f"Redis scan failed: {e}") from e


async def build_cache_store(redis_service: RedisService) -> CacheStore:
    """Pick the Redis store when the server answers a PING, else the in-memory one."""
    client = redis_service.get_client()
    if client is None or not await redis_service.health_check():
        logger.warning("Redis unavailable, using in-memory item cache")
        return InMemoryCacheStore()
    logger.info("Item cache backed by Redis")
    return RedisCacheStore(client)
