"""
Unified caching layer with multiple backend support.

Provides a consistent interface for caching data across different backends:
- Redis (production)
- SQLite (local development)
- In-memory (testing)

Entries carry their fetch time and fresh TTL. Backends keep an entry until
its stale ceiling, so an expired-but-not-stale entry can still be served
when a live refresh fails.
"""
import asyncio
import pickle
import sqlite3
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload with the time it was fetched and its fresh TTL."""

    payload: Any
    fetched_at: float
    ttl_seconds: int

    @property
    def age_seconds(self) -> float:
        return time.time() - self.fetched_at

    @property
    def is_fresh(self) -> bool:
        return self.age_seconds < self.ttl_seconds

    def is_within(self, stale_ttl_seconds: int) -> bool:
        return self.age_seconds < stale_ttl_seconds


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Get an entry from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, entry: CacheEntry, retain_seconds: int) -> None:
        """Store an entry, physically retained for ``retain_seconds``."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key from cache."""
        pass

    @abstractmethod
    async def clear_prefix(self, prefix: str) -> None:
        """Clear all keys with given prefix."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the cache connection."""
        pass


class InMemoryCache(CacheBackend):
    """
    Simple in-memory cache backend.

    Best for testing and single-invocation runs.
    Data is lost when the process exits.
    """

    def __init__(self, max_size: int = 10000):
        self._cache: dict[str, tuple[CacheEntry, float]] = {}  # entry, drop_time
        self._max_size = max_size
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            if key not in self._cache:
                return None

            entry, drop_time = self._cache[key]
            if time.time() > drop_time:
                del self._cache[key]
                return None

            return entry

    async def set(self, key: str, entry: CacheEntry, retain_seconds: int) -> None:
        async with self._lock:
            if len(self._cache) >= self._max_size:
                self._evict_expired()
                if len(self._cache) >= self._max_size:
                    # Remove oldest 10%
                    keys_to_remove = list(self._cache.keys())[: self._max_size // 10]
                    for k in keys_to_remove:
                        del self._cache[k]

            self._cache[key] = (entry, entry.fetched_at + retain_seconds)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._cache.pop(key, None)

    async def clear_prefix(self, prefix: str) -> None:
        async with self._lock:
            for key in [k for k in self._cache if k.startswith(prefix)]:
                del self._cache[key]

    async def close(self) -> None:
        async with self._lock:
            self._cache.clear()

    def _evict_expired(self) -> None:
        now = time.time()
        for key in [k for k, (_, drop) in self._cache.items() if now > drop]:
            del self._cache[key]


class SQLiteCache(CacheBackend):
    """
    SQLite-based cache backend.

    Good for local development: entries survive process restarts, so a
    later invocation can fall back on stale data from an earlier one.
    """

    def __init__(self, db_path: Union[str, Path] = "cache.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = asyncio.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._connection.execute("""
                CREATE TABLE IF NOT EXISTS cache (
                    key TEXT PRIMARY KEY,
                    value BLOB,
                    drop_time REAL
                )
            """)
            self._connection.commit()
        return self._connection

    async def _run(self, func: Callable[[sqlite3.Connection], Any]) -> Any:
        async with self._lock:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, lambda: func(self._get_connection()))

    async def get(self, key: str) -> Optional[CacheEntry]:
        def _get(conn: sqlite3.Connection) -> Optional[CacheEntry]:
            row = conn.execute(
                "SELECT value, drop_time FROM cache WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return None

            value_blob, drop_time = row
            if drop_time and time.time() > drop_time:
                conn.execute("DELETE FROM cache WHERE key = ?", (key,))
                conn.commit()
                return None

            return pickle.loads(value_blob)

        return await self._run(_get)

    async def set(self, key: str, entry: CacheEntry, retain_seconds: int) -> None:
        def _set(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR REPLACE INTO cache (key, value, drop_time) VALUES (?, ?, ?)",
                (key, pickle.dumps(entry), entry.fetched_at + retain_seconds),
            )
            conn.commit()

        await self._run(_set)

    async def delete(self, key: str) -> None:
        def _delete(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM cache WHERE key = ?", (key,))
            conn.commit()

        await self._run(_delete)

    async def clear_prefix(self, prefix: str) -> None:
        def _clear(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM cache WHERE key LIKE ?", (f"{prefix}%",))
            conn.commit()

        await self._run(_clear)

    async def close(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None


class RedisCache(CacheBackend):
    """
    Redis-based cache backend.

    Shared between concurrent invocations. Requires a Redis server and the
    optional ``redis`` package.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0"):
        self.redis_url = redis_url
        self._redis = None
        self._lock = asyncio.Lock()

    async def _get_redis(self):
        if self._redis is None:
            async with self._lock:
                if self._redis is None:
                    import redis.asyncio as redis

                    self._redis = redis.from_url(self.redis_url, decode_responses=False)
        return self._redis

    async def get(self, key: str) -> Optional[CacheEntry]:
        redis = await self._get_redis()
        value = await redis.get(key)
        if value is None:
            return None
        return pickle.loads(value)

    async def set(self, key: str, entry: CacheEntry, retain_seconds: int) -> None:
        redis = await self._get_redis()
        await redis.setex(key, max(1, int(retain_seconds)), pickle.dumps(entry))

    async def delete(self, key: str) -> None:
        redis = await self._get_redis()
        await redis.delete(key)

    async def clear_prefix(self, prefix: str) -> None:
        redis = await self._get_redis()
        cursor = 0
        while True:
            cursor, keys = await redis.scan(cursor, match=f"{prefix}*", count=100)
            if keys:
                await redis.delete(*keys)
            if cursor == 0:
                break

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None


class CacheManager:
    """
    Cache manager with TTL-plus-stale-fallback semantics.

    ``get_or_fetch`` is the combinator every external call is wrapped in:
    a fresh entry is returned as is; otherwise the factory runs, and if it
    raises, the previous entry is served while it is younger than the stale
    ceiling. Past the ceiling the caller gets ``None`` and degrades.

    Example:
        >>> cache = CacheManager.create_memory_cache()
        >>> logs = await cache.get_or_fetch(
        ...     "game_logs:237:2024", fetch_logs, ttl_seconds=3600,
        ...     stale_ttl_seconds=86400,
        ... )
    """

    def __init__(
        self,
        backend: CacheBackend,
        key_prefix: str = "nba_props",
    ):
        self.backend = backend
        self.key_prefix = key_prefix
        self.logger = logger.bind(component="cache")

    @classmethod
    def create_memory_cache(cls, max_size: int = 10000) -> "CacheManager":
        """Create a cache manager with in-memory backend."""
        return cls(InMemoryCache(max_size=max_size))

    @classmethod
    def create_sqlite_cache(
        cls, db_path: Union[str, Path] = "data/cache/cache.db"
    ) -> "CacheManager":
        """Create a cache manager with SQLite backend."""
        return cls(SQLiteCache(db_path=db_path))

    @classmethod
    def create_redis_cache(
        cls, redis_url: str = "redis://localhost:6379/0"
    ) -> "CacheManager":
        """Create a cache manager with Redis backend."""
        return cls(RedisCache(redis_url=redis_url))

    @classmethod
    def create_from_settings(cls, settings) -> "CacheManager":
        """Create cache manager based on application settings."""
        backend = settings.cache.backend
        if backend == "redis" and settings.redis_url:
            return cls.create_redis_cache(settings.redis_url)
        if backend == "sqlite":
            return cls.create_sqlite_cache(settings.data_dir / "cache" / "cache.db")
        return cls.create_memory_cache()

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Get the raw entry (fresh or stale) for a key."""
        try:
            return await self.backend.get(self._make_key(key))
        except Exception as e:
            self.logger.error(f"Cache get error for {key}: {e}")
            return None

    async def get(self, key: str) -> Optional[Any]:
        """Get a payload only if it is still fresh."""
        entry = await self.get_entry(key)
        if entry is not None and entry.is_fresh:
            self.logger.debug(f"Cache hit: {key}")
            return entry.payload
        self.logger.debug(f"Cache miss: {key}")
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int,
        stale_ttl_seconds: Optional[int] = None,
    ) -> None:
        """Store a payload with its fresh TTL and stale ceiling."""
        entry = CacheEntry(payload=value, fetched_at=time.time(), ttl_seconds=ttl_seconds)
        retain = max(ttl_seconds, stale_ttl_seconds or ttl_seconds)
        try:
            await self.backend.set(self._make_key(key), entry, retain)
            self.logger.debug(f"Cache set: {key} (TTL: {ttl_seconds}s, stale: {retain}s)")
        except Exception as e:
            self.logger.error(f"Cache set error for {key}: {e}")

    async def delete(self, key: str) -> None:
        """Delete a key from cache."""
        try:
            await self.backend.delete(self._make_key(key))
        except Exception as e:
            self.logger.error(f"Cache delete error for {key}: {e}")

    async def clear_prefix(self, prefix: str) -> None:
        """Clear all keys with given prefix."""
        try:
            await self.backend.clear_prefix(self._make_key(prefix))
            self.logger.info(f"Cache cleared for prefix: {prefix}")
        except Exception as e:
            self.logger.error(f"Cache clear error for prefix {prefix}: {e}")

    async def get_or_fetch(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl_seconds: int,
        stale_ttl_seconds: Optional[int] = None,
        is_empty: Callable[[Any], bool] = lambda value: value is None,
    ) -> Optional[Any]:
        """
        Get a fresh value from cache, or fetch it, falling back on stale data.

        Args:
            key: Cache key (source + parameters)
            factory: Async callable performing the live fetch
            ttl_seconds: Fresh TTL
            stale_ttl_seconds: Ceiling up to which an expired entry may be
                served when the live fetch fails or comes back empty
            is_empty: Predicate for results not worth caching

        Returns:
            Fresh value, live value, stale value, or None
        """
        entry = await self.get_entry(key)
        if entry is not None and entry.is_fresh:
            self.logger.debug(f"Cache hit: {key}")
            return entry.payload

        stale_ceiling = stale_ttl_seconds or ttl_seconds
        try:
            value = await factory()
        except Exception as e:
            if entry is not None and entry.is_within(stale_ceiling):
                self.logger.warning(
                    f"Live fetch failed for {key} ({e}); serving stale entry "
                    f"aged {entry.age_seconds / 60:.0f}m"
                )
                return entry.payload
            self.logger.warning(f"Live fetch failed for {key} and no usable cache: {e}")
            return None

        if is_empty(value):
            if entry is not None and entry.is_within(stale_ceiling):
                self.logger.warning(
                    f"Live fetch for {key} came back empty; serving stale entry "
                    f"aged {entry.age_seconds / 60:.0f}m"
                )
                return entry.payload
            return value

        await self.set(key, value, ttl_seconds, stale_ceiling)
        return value

    async def close(self) -> None:
        """Close the cache backend."""
        await self.backend.close()

    async def health_check(self) -> dict:
        """Check cache health."""
        try:
            test_key = "_health_check"
            await self.set(test_key, "ok", 60)
            value = await self.get(test_key)
            await self.delete(test_key)

            return {
                "status": "healthy" if value == "ok" else "degraded",
                "backend": type(self.backend).__name__,
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "backend": type(self.backend).__name__,
                "error": str(e),
            }
