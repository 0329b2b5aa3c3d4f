"""
Tests for transient-error retry and the TTL-plus-stale cache.

Covers:
- Transient vs fatal error classification
- Retry attempt counts and give-up behavior
- Fresh hits, live refresh, stale fallback and the stale ceiling
"""
import asyncio
import time
from unittest.mock import AsyncMock

import aiohttp
import pytest

from nba_props.data.cache.cache_manager import CacheEntry, CacheManager
from nba_props.data.sources.base import (
    AuthenticationError,
    DataSourceError,
    RateLimitError,
    RetryConfig,
    is_transient_error,
    with_retry,
)
from nba_props.data.sources.odds_api import OddsAPIClient

NO_DELAY = RetryConfig(max_retries=2, initial_delay_seconds=0.0)


def _response_error(status: int) -> aiohttp.ClientResponseError:
    return aiohttp.ClientResponseError(request_info=None, history=(), status=status)


class TestTransientClassification:
    """Which failures are worth a retry."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503])
    def test_rate_limit_and_server_errors_are_transient(self, status):
        assert is_transient_error(_response_error(status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_fatal(self, status):
        assert not is_transient_error(_response_error(status))

    def test_timeouts_and_resets_are_transient(self):
        assert is_transient_error(asyncio.TimeoutError())
        assert is_transient_error(ConnectionResetError())
        assert is_transient_error(RuntimeError("socket hang up"))
        assert is_transient_error(OSError("getaddrinfo EAI_AGAIN api.example"))

    def test_source_errors_follow_retry_allowed(self):
        assert is_transient_error(RateLimitError("odds_api"))
        assert not is_transient_error(AuthenticationError("odds_api"))
        assert not is_transient_error(DataSourceError("boom", "x", retry_allowed=False))

    def test_backoff_is_capped(self):
        config = RetryConfig()
        assert [config.delay_for(i) for i in range(4)] == [1.0, 2.0, 4.0, 4.0]


class TestWithRetry:
    """Retry loop around a single async operation."""

    def test_succeeds_after_transient_failures(self):
        operation = AsyncMock(side_effect=[asyncio.TimeoutError(), ConnectionResetError(), "ok"])

        result = asyncio.run(with_retry(operation, NO_DELAY))

        assert result == "ok"
        assert operation.await_count == 3

    def test_gives_up_after_max_retries(self):
        operation = AsyncMock(side_effect=asyncio.TimeoutError())

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(with_retry(operation, NO_DELAY))
        assert operation.await_count == 3

    def test_fatal_error_is_not_retried(self):
        operation = AsyncMock(side_effect=_response_error(404))

        with pytest.raises(aiohttp.ClientResponseError):
            asyncio.run(with_retry(operation, NO_DELAY))
        assert operation.await_count == 1


async def _seed(cache: CacheManager, key: str, payload, age_seconds: float, ttl: int = 300) -> None:
    entry = CacheEntry(payload=payload, fetched_at=time.time() - age_seconds, ttl_seconds=ttl)
    await cache.backend.set(cache._make_key(key), entry, retain_seconds=86400)


class TestGetOrFetch:
    """Fresh hit, live fetch and stale fallback."""

    def test_fresh_entry_skips_factory(self, memory_cache):
        factory = AsyncMock(return_value="live")

        async def scenario():
            await _seed(memory_cache, "logs:1", "cached", age_seconds=10)
            return await memory_cache.get_or_fetch("logs:1", factory, ttl_seconds=300)

        assert asyncio.run(scenario()) == "cached"
        factory.assert_not_awaited()

    def test_expired_entry_is_refreshed(self, memory_cache):
        factory = AsyncMock(return_value="live")

        async def scenario():
            await _seed(memory_cache, "logs:1", "cached", age_seconds=600)
            value = await memory_cache.get_or_fetch(
                "logs:1", factory, ttl_seconds=300, stale_ttl_seconds=3600
            )
            return value, await memory_cache.get("logs:1")

        value, cached = asyncio.run(scenario())
        assert value == "live"
        assert cached == "live"

    def test_failed_fetch_serves_stale_within_ceiling(self, memory_cache):
        factory = AsyncMock(side_effect=RuntimeError("provider down"))

        async def scenario():
            await _seed(memory_cache, "defense:2024", {"rank": 3}, age_seconds=7200)
            return await memory_cache.get_or_fetch(
                "defense:2024", factory, ttl_seconds=3600, stale_ttl_seconds=86400
            )

        assert asyncio.run(scenario()) == {"rank": 3}

    def test_failed_fetch_past_ceiling_returns_none(self, memory_cache):
        factory = AsyncMock(side_effect=RuntimeError("provider down"))

        async def scenario():
            await _seed(memory_cache, "props:e1", ["old"], age_seconds=4000)
            return await memory_cache.get_or_fetch(
                "props:e1", factory, ttl_seconds=300, stale_ttl_seconds=1800
            )

        assert asyncio.run(scenario()) is None

    def test_failed_fetch_without_entry_returns_none(self, memory_cache):
        factory = AsyncMock(side_effect=RuntimeError("provider down"))

        result = asyncio.run(memory_cache.get_or_fetch("missing", factory, ttl_seconds=60))

        assert result is None

    def test_empty_results_are_not_cached(self, memory_cache):
        factory = AsyncMock(return_value={})

        async def scenario():
            await memory_cache.get_or_fetch(
                "defense:2025", factory, ttl_seconds=60, is_empty=lambda v: not v
            )
            return await memory_cache.get_entry("defense:2025")

        assert asyncio.run(scenario()) is None

    def test_empty_fetch_serves_stale_entry(self, memory_cache):
        factory = AsyncMock(return_value=[])

        async def scenario():
            await _seed(memory_cache, "logs:7", [{"points": 30}], age_seconds=7200, ttl=3600)
            value = await memory_cache.get_or_fetch(
                "logs:7", factory, ttl_seconds=3600, stale_ttl_seconds=86400, is_empty=lambda v: not v
            )
            return value, await memory_cache.get_entry("logs:7")

        value, entry = asyncio.run(scenario())
        assert value == [{"points": 30}]
        factory.assert_awaited_once()
        # The stale entry is kept, not replaced by the empty result
        assert entry.payload == [{"points": 30}]

    def test_empty_fetch_past_ceiling_returns_empty(self, memory_cache):
        factory = AsyncMock(return_value=[])

        async def scenario():
            await _seed(memory_cache, "logs:7", [{"points": 30}], age_seconds=5000, ttl=300)
            return await memory_cache.get_or_fetch(
                "logs:7", factory, ttl_seconds=300, stale_ttl_seconds=1800, is_empty=lambda v: not v
            )

        assert asyncio.run(scenario()) == []

    def test_sqlite_backend_round_trip(self, tmp_path):
        cache = CacheManager.create_sqlite_cache(tmp_path / "cache.db")

        async def scenario():
            await cache.set("player:jayson tatum", 434, ttl_seconds=60)
            value = await cache.get("player:jayson tatum")
            await cache.close()
            return value

        assert asyncio.run(scenario()) == 434


class TestClearPrefix:
    def test_only_matching_keys_are_cleared(self, memory_cache):
        async def scenario():
            await memory_cache.set("logs:1", [1], ttl_seconds=300)
            await memory_cache.set("logs:2", [2], ttl_seconds=300)
            await memory_cache.set("defense:2024", {"rank": 1}, ttl_seconds=300)
            await memory_cache.clear_prefix("logs:")
            return (
                await memory_cache.get("logs:1"),
                await memory_cache.get("logs:2"),
                await memory_cache.get("defense:2024"),
            )

        assert asyncio.run(scenario()) == (None, None, {"rank": 1})


class TestCachedSourceRetry:
    """A cached client call retries once per attempt budget, not per layer."""

    @staticmethod
    def _client() -> OddsAPIClient:
        client = OddsAPIClient(api_key="key", retry_config=NO_DELAY)
        client._request_json = AsyncMock(
            side_effect=DataSourceError("API error 503", "odds_api", retry_allowed=True, status_code=503)
        )
        return client

    def test_persistent_server_error_makes_three_attempts(self):
        client = self._client()

        result = asyncio.run(client.get_event_odds("evt-1", ["player_points"]))

        assert result is None
        assert client._request_json.await_count == 3
        assert client.get_health().consecutive_failures == 1

    def test_events_make_three_attempts(self):
        client = self._client()

        assert asyncio.run(client.get_events()) == []
        assert client._request_json.await_count == 3
