"""
Caching layer for the NBA props pipeline.

Provides multiple cache backends behind a TTL-plus-stale-fallback manager:
- InMemoryCache: Fast, ephemeral cache for tests and single runs
- SQLiteCache: Persistent local cache
- RedisCache: Shared cache for concurrent invocations
"""
from .cache_manager import (
    CacheBackend,
    CacheEntry,
    CacheManager,
    InMemoryCache,
    SQLiteCache,
    RedisCache,
)

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheManager",
    "InMemoryCache",
    "SQLiteCache",
    "RedisCache",
]
