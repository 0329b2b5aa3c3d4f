"""
Base classes and resilience primitives for all data source clients.

Provides the error taxonomy, the generic retry-with-backoff combinator,
shared HTTP session handling, health tracking, and the cached data source
that composes retry with the TTL-plus-stale cache.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import aiohttp
from loguru import logger

from ..cache.cache_manager import CacheManager

T = TypeVar("T")


class DataSourceStatus(str, Enum):
    """Health status of a data source."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    DISABLED = "disabled"


@dataclass
class DataSourceHealth:
    """Health information for a data source."""

    source_name: str
    status: DataSourceStatus
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None
    latency_ms: Optional[float] = None


@dataclass
class RetryConfig:
    """Configuration for retry behavior (delays 1s, 2s, capped at 4s)."""

    max_retries: int = 2
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 4.0
    exponential_base: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-based)."""
        delay = self.initial_delay_seconds * (self.exponential_base ** attempt)
        return min(delay, self.max_delay_seconds)


class DataSourceError(Exception):
    """Base exception for data source errors."""

    def __init__(
        self,
        message: str,
        source_name: str,
        original_error: Optional[Exception] = None,
        retry_allowed: bool = True,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.source_name = source_name
        self.original_error = original_error
        self.retry_allowed = retry_allowed
        self.status_code = status_code


class RateLimitError(DataSourceError):
    """Error when rate limit is exceeded."""

    def __init__(
        self,
        source_name: str,
        retry_after_seconds: Optional[int] = None,
    ):
        super().__init__(
            f"Rate limit exceeded for {source_name}",
            source_name,
            retry_allowed=True,
            status_code=429,
        )
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(DataSourceError):
    """Error when authentication fails."""

    def __init__(self, source_name: str, message: str = "Authentication failed"):
        super().__init__(message, source_name, retry_allowed=False)


class DataNotAvailableError(DataSourceError):
    """Error when requested data is not available."""

    def __init__(self, source_name: str, message: str):
        super().__init__(message, source_name, retry_allowed=False)


class ConfigurationError(DataSourceError):
    """Missing credentials or settings. Aborts the invocation."""

    def __init__(self, source_name: str, message: str):
        super().__init__(message, source_name, retry_allowed=False)


TRANSIENT_MARKERS = (
    "timeout",
    "timed out",
    "socket hang up",
    "econnreset",
    "econnrefused",
    "etimedout",
    "enotfound",
    "eai_again",
)


def is_transient_error(error: BaseException) -> bool:
    """
    Classify an error as transient (worth retrying) or fatal.

    Transient: HTTP 429 and 5xx, timeouts, connection resets/refusals and
    DNS hiccups. Everything else, including 4xx and auth failures, is fatal.
    """
    if isinstance(error, DataSourceError):
        return error.retry_allowed
    if isinstance(error, aiohttp.ClientResponseError):
        return error.status == 429 or error.status >= 500
    if isinstance(
        error,
        (
            asyncio.TimeoutError,
            aiohttp.ClientConnectionError,
            ConnectionResetError,
            ConnectionRefusedError,
        ),
    ):
        return True
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retry_config: Optional[RetryConfig] = None,
    is_transient: Callable[[BaseException], bool] = is_transient_error,
    label: str = "request",
) -> T:
    """
    Run an async operation, retrying transient failures with backoff.

    Non-transient errors are re-raised immediately. The sleep between
    attempts only suspends this task, so other games keep progressing.

    Args:
        operation: Zero-argument coroutine factory
        retry_config: Attempt count and backoff curve
        is_transient: Predicate deciding whether an error is retried
        label: Name used in log messages

    Returns:
        The operation's result
    """
    config = retry_config or RetryConfig()
    for attempt in range(config.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_transient(e) or attempt >= config.max_retries:
                raise
            delay = config.delay_for(attempt)
            logger.warning(
                f"{label}: transient error on attempt {attempt + 1} ({e}); "
                f"retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover


class BaseDataSource:
    """
    Base class for HTTP data sources.

    Provides:
    - Shared aiohttp session with a per-source timeout
    - Status-code classification into the error taxonomy
    - Retry logic via ``with_retry``
    - Health monitoring
    - Logging bound to the source name
    """

    def __init__(
        self,
        source_name: str,
        enabled: bool = True,
        retry_config: Optional[RetryConfig] = None,
        timeout_seconds: float = 15.0,
        max_concurrency: int = 5,
    ):
        self.source_name = source_name
        self.enabled = enabled
        self.retry_config = retry_config or RetryConfig()
        self.timeout_seconds = timeout_seconds

        self._session: Optional[aiohttp.ClientSession] = None
        self._request_semaphore = asyncio.Semaphore(max_concurrency)
        self._health = DataSourceHealth(
            source_name=source_name,
            status=DataSourceStatus.HEALTHY if enabled else DataSourceStatus.DISABLED,
        )

        self.logger = logger.bind(source=source_name)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def _require_enabled(self) -> None:
        if not self.enabled:
            raise ConfigurationError(
                self.source_name, f"{self.source_name} is not configured"
            )

    def _on_response_headers(self, headers: Any) -> None:
        """Hook for sources that read quota headers."""

    async def _raise_for_status(self, response: aiohttp.ClientResponse) -> None:
        """Map a non-200 response onto the error taxonomy."""
        status = response.status
        if status == 200:
            return
        text = await response.text()
        if status in (401, 403):
            raise AuthenticationError(self.source_name, f"HTTP {status}: {text[:200]}")
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                self.source_name,
                retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status in (404, 422):
            raise DataNotAvailableError(self.source_name, f"HTTP {status}: {text[:200]}")
        raise DataSourceError(
            f"API error {status}: {text[:200]}",
            self.source_name,
            retry_allowed=status >= 500,
            status_code=status,
        )

    async def _request_json(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """One HTTP attempt returning decoded JSON. No retry here."""
        async with self._request_semaphore:
            session = await self._get_session()
            try:
                async with session.request(
                    method, url, params=params, headers=headers, json=json_body
                ) as response:
                    self._on_response_headers(response.headers)
                    await self._raise_for_status(response)
                    return await response.json(content_type=None)
            except aiohttp.ClientError as e:
                raise DataSourceError(
                    f"Connection error: {e}",
                    self.source_name,
                    original_error=e,
                    retry_allowed=True,
                )
            except asyncio.TimeoutError as e:
                raise DataSourceError(
                    f"Request timeout after {self.timeout_seconds}s",
                    self.source_name,
                    original_error=e,
                    retry_allowed=True,
                )

    async def fetch(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        """
        Run an operation with retry and health bookkeeping.

        This is the entry point every client method goes through.
        """
        self._require_enabled()
        start_time = datetime.now()
        try:
            result = await with_retry(
                operation,
                self.retry_config,
                label=f"{self.source_name}:{label}",
            )
        except Exception as e:
            self._record_failure(str(e))
            raise
        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
        self._record_success(elapsed_ms)
        return result

    async def get_json(
        self,
        url: str,
        label: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """GET with retry."""
        return await self.fetch(
            lambda: self._request_json("GET", url, params=params, headers=headers),
            label,
        )

    def _record_success(self, latency_ms: float) -> None:
        """Record a successful fetch."""
        self._health.last_success = datetime.now()
        self._health.latency_ms = latency_ms
        self._health.consecutive_failures = 0
        self._health.error_message = None
        self._health.status = DataSourceStatus.HEALTHY

    def _record_failure(self, error_message: str) -> None:
        """Record a failed fetch."""
        self._health.last_failure = datetime.now()
        self._health.consecutive_failures += 1
        self._health.error_message = error_message
        if self._health.consecutive_failures >= 3:
            self._health.status = DataSourceStatus.UNHEALTHY
        else:
            self._health.status = DataSourceStatus.DEGRADED

    def get_health(self) -> DataSourceHealth:
        """Get current health status of the data source."""
        return self._health


class CachedDataSource(BaseDataSource):
    """
    Data source whose calls are wrapped in the TTL-plus-stale cache.

    The cache is injected (``set_cache``) so tests can pass an empty or
    pre-seeded manager; by default each source owns an in-memory one.
    """

    def __init__(
        self,
        source_name: str,
        cache: Optional[CacheManager] = None,
        **kwargs,
    ):
        super().__init__(source_name, **kwargs)
        self.cache_prefix = source_name
        self._cache = cache or CacheManager.create_memory_cache()

    def set_cache(self, cache: CacheManager) -> None:
        """Set the cache manager instance."""
        self._cache = cache

    @property
    def cache(self) -> CacheManager:
        return self._cache

    def _cache_key(self, *parts: Any) -> str:
        return ":".join([self.cache_prefix, *(str(p) for p in parts)])

    async def fetch_cached(
        self,
        key: str,
        operation: Callable[[], Awaitable[T]],
        ttl_seconds: int,
        stale_ttl_seconds: int,
        is_empty: Callable[[Any], bool] = lambda value: value is None,
    ) -> Optional[T]:
        """
        Fetch through the cache: fresh hit, else live call, else stale.

        ``operation`` must already retry (``get_json``); the cache adds no
        retry layer of its own. Configuration errors are raised before the
        cache is consulted.
        """
        self._require_enabled()
        return await self._cache.get_or_fetch(
            key,
            operation,
            ttl_seconds=ttl_seconds,
            stale_ttl_seconds=stale_ttl_seconds,
            is_empty=is_empty,
        )
