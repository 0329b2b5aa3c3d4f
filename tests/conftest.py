"""Shared fixtures for the NBA props test suite."""
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import pytest

from nba_props.config.constants import StatType
from nba_props.data.models import (
    AltLine,
    AltProp,
    DataHealth,
    DefenseRank,
    GameLogEntry,
    HealthStatus,
    Prop,
    SharedData,
)
from nba_props.data.cache.cache_manager import CacheManager
from nba_props.database.store import ResultStore

HOME = "Boston Celtics"
AWAY = "New York Knicks"
GAME_TIME = datetime(2025, 1, 15, 0, 30, tzinfo=timezone.utc)

# Most recent first; averages 28.5 over the last ten
L10_POINTS = [30, 28, 25, 32, 29, 31, 27, 26, 33, 24]
# Older games: 13 of 15 above 23.5, so the 25-game season sits at 23/25 = 92%
OLDER_POINTS = [26, 27, 22, 29, 30, 25, 28, 24, 31, 21, 27, 26, 28, 29, 25]


def make_logs(
    points: Sequence[float],
    team: str = HOME,
    rebounds: float = 6.0,
    assists: float = 5.0,
    start: datetime = GAME_TIME,
) -> list[GameLogEntry]:
    """Game logs, most recent first, one game every two days before ``start``."""
    return [
        GameLogEntry(
            points=float(pts),
            rebounds=rebounds,
            assists=assists,
            steals=1.0,
            blocks=0.5,
            turnovers=2.0,
            threes_made=2.0,
            threes_attempted=6.0,
            fgm=10.0,
            fga=20.0,
            ftm=4.0,
            fta=5.0,
            minutes="34:30",
            game_id=1000 - i,
            game_date=start - timedelta(days=2 * (i + 1)),
            team=team,
            team_code="BOS" if team == HOME else "NYK",
        )
        for i, pts in enumerate(points)
    ]


def make_defense(rank: int, team: str = AWAY) -> DefenseRank:
    return DefenseRank(
        team=team.lower(),
        rank=rank,
        points_allowed_per_game=100.0 + rank,
        games_played=40,
    )


def healthy() -> DataHealth:
    return DataHealth(
        overall=HealthStatus.HEALTHY,
        standard_props=True,
        alt_props=True,
        defense=True,
        players_total=1,
        players_resolved=1,
        players_with_logs=1,
    )


def critical() -> DataHealth:
    return DataHealth(
        overall=HealthStatus.CRITICAL,
        standard_props=False,
        alt_props=False,
        defense=False,
        issues=("no standard or alternate props",),
    )


def make_shared(
    event_id: str = "evt-1",
    standard_props: Sequence[Prop] = (),
    alt_props: Sequence[AltProp] = (),
    logs_by_player: Optional[dict[str, list[GameLogEntry]]] = None,
    defense_rank: Optional[int] = 18,
    health: Optional[DataHealth] = None,
    home_team: str = HOME,
    away_team: str = AWAY,
) -> SharedData:
    """SharedData for one game, players resolved to sequential ids."""
    logs_by_player = logs_by_player or {}
    id_map = {name: 100 + i for i, name in enumerate(sorted(logs_by_player))}
    defense = {}
    if defense_rank is not None:
        defense[away_team.lower()] = make_defense(defense_rank, away_team)
        defense[home_team.lower()] = make_defense(33 - defense_rank, home_team)
    return SharedData(
        event_id=event_id,
        standard_props=tuple(standard_props),
        alt_props=tuple(alt_props),
        player_id_map=id_map,
        game_logs_map={id_map[name]: logs for name, logs in logs_by_player.items()},
        defense_ranks=defense,
        health=health or healthy(),
        home_team=home_team,
        away_team=away_team,
        game_time=GAME_TIME,
    )


def alt_ladder(player: str, stat: StatType, *lines: AltLine) -> AltProp:
    return AltProp(player_name=player, stat_type=stat, lines=tuple(sorted(lines, key=lambda a: a.line)))


@pytest.fixture
def season_logs() -> list[GameLogEntry]:
    """25 games: the L10 window followed by 15 older games."""
    return make_logs(L10_POINTS + OLDER_POINTS)


@pytest.fixture
def points_prop() -> Prop:
    return Prop(
        player_name="Jayson Tatum",
        stat_type=StatType.POINTS,
        line=27.5,
        odds_over=-115,
        odds_under=-105,
        bookmaker_over="DraftKings",
        bookmaker_under="FanDuel",
    )


@pytest.fixture
def memory_cache() -> CacheManager:
    return CacheManager.create_memory_cache()


@pytest.fixture
def store(tmp_path) -> ResultStore:
    """A file-backed store, so sessions on different threads see the same data."""
    return ResultStore(f"sqlite:///{tmp_path / 'results.db'}")
