"""Tests for shared-data acquisition and the data-health verdict."""
import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from conftest import AWAY, HOME, make_defense, make_logs

from nba_props.config.constants import StatType
from nba_props.data.models import AltLine, HealthStatus
from nba_props.data.pipeline import DataPipeline, assess_health
from nba_props.data.sources.base import ConfigurationError
from nba_props.data.sources.odds_api import EventProps


class TestAssessHealth:
    """Healthy, degraded and critical verdicts."""

    def test_healthy(self):
        health = assess_health(10, 8, 6, 6, 6, has_defense=True)

        assert health.overall is HealthStatus.HEALTHY
        assert health.issues == ()
        assert health.player_resolution == "6/6"

    def test_no_props_is_critical(self):
        health = assess_health(0, 0, 0, 0, 0, has_defense=True)

        assert health.overall is HealthStatus.CRITICAL
        assert health.is_critical

    def test_no_players_resolved_is_critical(self):
        assert assess_health(5, 5, 4, 0, 0, has_defense=True).is_critical

    def test_resolved_players_without_logs_is_critical(self):
        assert assess_health(5, 5, 4, 4, 0, has_defense=True).is_critical

    def test_low_resolution_is_degraded(self):
        health = assess_health(5, 5, 10, 4, 4, has_defense=True)

        assert health.overall is HealthStatus.DEGRADED
        assert "low player resolution 4/10" in health.issues

    def test_missing_defense_is_degraded(self):
        health = assess_health(5, 0, 2, 2, 2, has_defense=False)

        assert health.overall is HealthStatus.DEGRADED
        assert health.alt_props is False

    def test_to_dict(self):
        payload = assess_health(5, 5, 4, 3, 2, has_defense=True).to_dict()

        assert payload["overall"] == "healthy"
        assert payload["game_logs"] == "2/3"


def _event_props(player: str, *lines: AltLine) -> EventProps:
    return EventProps(
        event_id="evt-1",
        home_team=HOME,
        away_team=AWAY,
        lines={(player, StatType.POINTS): list(lines)},
    )


def _client(name: str, enabled: bool = True) -> Mock:
    client = Mock()
    client.source_name = name
    client.enabled = enabled
    client.close = AsyncMock()
    return client


@pytest.fixture
def clients():
    odds = _client("odds_api")
    odds.get_standard_props = AsyncMock(
        return_value=_event_props("Jayson Tatum", AltLine(27.5, -115, -105, "DraftKings", "FanDuel"))
    )
    odds.get_alternate_props = AsyncMock(
        return_value=_event_props(
            "Jalen Brunson", AltLine(22.5, -450, 320, "FanDuel"), AltLine(25.5, -240, 190, "FanDuel")
        )
    )
    stats = _client("player_stats")
    stats.resolve_player_ids = AsyncMock(return_value={"Jalen Brunson": 77, "Jayson Tatum": 42})
    stats.get_game_logs_batch = AsyncMock(return_value={42: make_logs([30] * 5), 77: []})
    defense = _client("defense")
    defense.get_defense_rankings = AsyncMock(
        return_value={"new york knicks": make_defense(12), "boston celtics": make_defense(3, HOME)}
    )
    return odds, stats, defense


class TestFetchSharedGameData:
    """One acquisition per game, shared by both engines."""

    def test_assembles_shared_data(self, clients):
        pipeline = DataPipeline(*clients)

        shared = asyncio.run(pipeline.fetch_shared_game_data("evt-1"))

        assert shared.home_team == HOME
        assert [p.player_name for p in shared.standard_props] == ["Jayson Tatum"]
        assert [a.player_name for a in shared.alt_props] == ["Jalen Brunson"]
        assert len(shared.logs_for("Jayson Tatum")) == 5
        assert shared.logs_for("Jalen Brunson") == ()
        assert shared.defense_for(AWAY).rank == 12
        assert shared.health.overall is HealthStatus.HEALTHY
        assert shared.health.game_logs == "1/2"

    def test_player_names_are_deduplicated_and_sorted(self, clients):
        odds, stats, _ = clients

        asyncio.run(DataPipeline(*clients).fetch_shared_game_data("evt-1"))

        stats.resolve_player_ids.assert_awaited_once_with(["Jalen Brunson", "Jayson Tatum"])

    def test_shared_data_is_read_only(self, clients):
        shared = asyncio.run(DataPipeline(*clients).fetch_shared_game_data("evt-1"))

        with pytest.raises(TypeError):
            shared.player_id_map["Someone"] = 1

    def test_failed_sources_degrade(self, clients):
        odds, stats, defense = clients
        odds.get_alternate_props.side_effect = RuntimeError("502")
        defense.get_defense_rankings.side_effect = RuntimeError("timeout")

        shared = asyncio.run(DataPipeline(*clients).fetch_shared_game_data("evt-1"))

        assert shared.alt_props == ()
        assert dict(shared.defense_ranks) == {}
        assert shared.health.overall is HealthStatus.DEGRADED
        assert "defense ranks unavailable" in shared.health.issues

    def test_missing_credentials_raise(self, clients):
        odds, stats, defense = clients
        stats.enabled = False

        with pytest.raises(ConfigurationError):
            asyncio.run(DataPipeline(odds, stats, defense).fetch_shared_game_data("evt-1"))
        odds.get_standard_props.assert_not_awaited()

    def test_close_closes_every_client(self, clients, memory_cache):
        pipeline = DataPipeline(*clients, cache=memory_cache)

        asyncio.run(pipeline.close())

        for client in clients:
            client.close.assert_awaited_once()
