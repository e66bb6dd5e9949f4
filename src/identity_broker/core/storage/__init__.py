"""Cache storage backends."""

from .cache_store import (
    CacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
    build_cache_store,
)

__all__ = ["CacheStore", "InMemoryCacheStore", "RedisCacheStore", "build_cache_store"]
