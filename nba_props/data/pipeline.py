"""
Data pipeline orchestration layer.

Produces, for one game, the complete raw dataset both scoring engines need
with the fewest external calls:
- Standard and alternate props fetched concurrently
- One id resolution and one game-log fetch per referenced player
- One league-wide defense ranking
- A health verdict describing what was (and was not) acquired
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from loguru import logger

from .cache.cache_manager import CacheManager
from .models import DataHealth, HealthStatus, SharedData
from .sources.base import ConfigurationError, DataSourceHealth
from .sources.defense import DefenseClient
from .sources.inference import InferenceClient
from .sources.odds_api import EventProps, OddsAPIClient
from .sources.player_stats import PlayerStatsClient


@dataclass
class PipelineHealth:
    """Overall health status of the data sources."""

    status: str  # healthy, degraded, unhealthy
    sources: dict[str, DataSourceHealth]
    cache: dict = field(default_factory=dict)
    odds_credits: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


def assess_health(
    standard_count: int,
    alt_count: int,
    players_total: int,
    players_resolved: int,
    players_with_logs: int,
    has_defense: bool,
) -> DataHealth:
    """
    Compute the data-health verdict for one acquisition.

    Critical when nothing usable came back: no prop source, no resolved
    player, or resolved players without any logs. Degraded when less than
    half the players resolved or defense ranks are missing.
    """
    issues: list[str] = []
    critical = False

    if standard_count == 0 and alt_count == 0:
        issues.append("no standard or alternate props")
        critical = True
    if players_total > 0 and players_resolved == 0:
        issues.append("no players resolved")
        critical = True
    if players_resolved > 0 and players_with_logs == 0:
        issues.append("resolved players have no game logs")
        critical = True

    degraded = False
    if players_total > 0 and players_resolved / players_total < 0.5:
        issues.append(f"low player resolution {players_resolved}/{players_total}")
        degraded = True
    if not has_defense:
        issues.append("defense ranks unavailable")
        degraded = True

    if critical:
        overall = HealthStatus.CRITICAL
    elif degraded:
        overall = HealthStatus.DEGRADED
    else:
        overall = HealthStatus.HEALTHY

    return DataHealth(
        overall=overall,
        standard_props=standard_count > 0,
        alt_props=alt_count > 0,
        defense=has_defense,
        players_total=players_total,
        players_resolved=players_resolved,
        players_with_logs=players_with_logs,
        issues=tuple(issues),
    )


class DataPipeline:
    """
    Unified data access layer for the NBA props pipeline.

    Owns the source clients and the shared cache. The cache object is the
    only mutable state shared between concurrently processed games.

    Example:
        >>> pipeline = DataPipeline.from_settings(settings)
        >>> shared = await pipeline.fetch_shared_game_data("e1f2...")
        >>> shared.health.overall
        <HealthStatus.HEALTHY: 'healthy'>
    """

    def __init__(
        self,
        odds_client: OddsAPIClient,
        player_stats_client: PlayerStatsClient,
        defense_client: DefenseClient,
        inference_client: Optional[InferenceClient] = None,
        cache: Optional[CacheManager] = None,
    ):
        self.odds = odds_client
        self.player_stats = player_stats_client
        self.defense = defense_client
        self.inference = inference_client
        self.cache = cache
        self.logger = logger.bind(component="pipeline")

    @classmethod
    def from_settings(cls, settings, cache: Optional[CacheManager] = None) -> "DataPipeline":
        """Create a pipeline whose clients share one cache manager."""
        cache = cache or CacheManager.create_from_settings(settings)
        return cls(
            odds_client=OddsAPIClient.from_settings(settings, cache=cache),
            player_stats_client=PlayerStatsClient.from_settings(settings, cache=cache),
            defense_client=DefenseClient.from_settings(settings, cache=cache),
            inference_client=InferenceClient.from_settings(settings),
            cache=cache,
        )

    def check_credentials(self) -> None:
        """Raise ConfigurationError when a required provider has no credentials."""
        missing = [
            client.source_name
            for client in (self.odds, self.player_stats)
            if not client.enabled
        ]
        if missing:
            raise ConfigurationError(
                ",".join(missing), f"Missing credentials for: {', '.join(missing)}"
            )

    async def get_events(self) -> list[dict]:
        self.check_credentials()
        return await self.odds.get_events()

    async def _props(self, fetch, event_id: str, kind: str) -> EventProps:
        try:
            return await fetch(event_id)
        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.warning(f"{kind} props failed for {event_id}: {e}")
            return EventProps(event_id=event_id)

    async def _defense(self) -> dict:
        try:
            return await self.defense.get_defense_rankings()
        except ConfigurationError:
            raise
        except Exception as e:
            self.logger.warning(f"Defense rankings failed: {e}")
            return {}

    async def fetch_shared_game_data(self, event_id: str) -> SharedData:
        """
        Fetch everything both engines need for one game.

        Only missing credentials raise; every other failure degrades to
        empty collections and shows up in ``SharedData.health``.
        """
        self.check_credentials()
        started = datetime.now()

        standard, alternate = await asyncio.gather(
            self._props(self.odds.get_standard_props, event_id, "standard"),
            self._props(self.odds.get_alternate_props, event_id, "alternate"),
        )

        player_names = sorted(standard.player_names | alternate.player_names)
        id_map = await self.player_stats.resolve_player_ids(player_names)
        resolved = {name: pid for name, pid in id_map.items() if pid is not None}

        game_logs, defense_ranks = await asyncio.gather(
            self.player_stats.get_game_logs_batch(resolved.values()),
            self._defense(),
        )
        players_with_logs = sum(1 for pid in resolved.values() if game_logs.get(pid))

        standard_props = standard.standard_props()
        alt_props = alternate.alt_props()

        health = assess_health(
            standard_count=len(standard_props),
            alt_count=len(alt_props),
            players_total=len(player_names),
            players_resolved=len(resolved),
            players_with_logs=players_with_logs,
            has_defense=bool(defense_ranks),
        )

        elapsed = (datetime.now() - started).total_seconds()
        log = self.logger.warning if health.overall is not HealthStatus.HEALTHY else self.logger.info
        log(
            f"Event {event_id}: {len(standard_props)} standard, {len(alt_props)} alt, "
            f"players {health.player_resolution}, logs {health.game_logs}, "
            f"defense={'yes' if defense_ranks else 'no'} -> {health.overall.value} "
            f"({elapsed:.1f}s)"
        )

        return SharedData(
            event_id=event_id,
            standard_props=standard_props,
            alt_props=alt_props,
            player_id_map=resolved,
            game_logs_map=game_logs,
            defense_ranks=defense_ranks,
            health=health,
            home_team=standard.home_team or alternate.home_team,
            away_team=standard.away_team or alternate.away_team,
            game_time=standard.commence_time or alternate.commence_time,
        )

    async def health_check(self) -> PipelineHealth:
        """Report per-source health from the clients' running counters."""
        sources = {
            client.source_name: client.get_health()
            for client in (self.odds, self.player_stats, self.defense, self.inference)
            if client is not None
        }
        cache_health = await self.cache.health_check() if self.cache else {}
        statuses = {h.status.value for h in sources.values()}
        if "unhealthy" in statuses:
            status = "unhealthy"
        elif "degraded" in statuses or "disabled" in statuses:
            status = "degraded"
        else:
            status = "healthy"
        return PipelineHealth(
            status=status,
            sources=sources,
            cache=cache_health,
            odds_credits=self.odds.get_credit_status(),
        )

    async def close(self) -> None:
        for client in (self.odds, self.player_stats, self.defense, self.inference):
            if client is not None:
                await client.close()
        if self.cache is not None:
            await self.cache.close()
