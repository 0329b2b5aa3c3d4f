"""
Core data containers shared by acquisition, features and both engines.

All containers are frozen dataclasses: once acquisition builds them they are
handed to the scoring engines by reference and never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from nba_props.config.constants import TEAM_ALIASES, Side, StatType


@dataclass(frozen=True)
class Prop:
    """A standard prop: one line per player-stat with best price per side."""

    player_name: str
    stat_type: StatType
    line: float
    odds_over: Optional[int] = None
    odds_under: Optional[int] = None
    bookmaker_over: Optional[str] = None
    bookmaker_under: Optional[str] = None

    def odds_for(self, side: Side) -> Optional[int]:
        return self.odds_over if side is Side.OVER else self.odds_under

    def bookmaker_for(self, side: Side) -> Optional[str]:
        return self.bookmaker_over if side is Side.OVER else self.bookmaker_under

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_name": self.player_name,
            "stat_type": self.stat_type.value,
            "line": self.line,
            "odds_over": self.odds_over,
            "odds_under": self.odds_under,
            "bookmaker_over": self.bookmaker_over,
            "bookmaker_under": self.bookmaker_under,
        }


@dataclass(frozen=True)
class AltLine:
    """One alternate line with its best price per side."""

    line: float
    odds_over: Optional[int] = None
    odds_under: Optional[int] = None
    bookmaker_over: Optional[str] = None
    bookmaker_under: Optional[str] = None

    def odds_for(self, side: Side) -> Optional[int]:
        return self.odds_over if side is Side.OVER else self.odds_under

    def bookmaker_for(self, side: Side) -> Optional[str]:
        return self.bookmaker_over if side is Side.OVER else self.bookmaker_under


@dataclass(frozen=True)
class AltProp:
    """Alternate lines for one player-stat, ordered by line ascending."""

    player_name: str
    stat_type: StatType
    lines: tuple[AltLine, ...]


@dataclass(frozen=True)
class GameLogEntry:
    """One historical box-score line for a player."""

    points: float = 0.0
    rebounds: float = 0.0
    assists: float = 0.0
    steals: float = 0.0
    blocks: float = 0.0
    turnovers: float = 0.0
    threes_made: float = 0.0
    threes_attempted: float = 0.0
    fgm: float = 0.0
    fga: float = 0.0
    ftm: float = 0.0
    fta: float = 0.0
    minutes: str = "0"
    game_id: Optional[int] = None
    game_date: Optional[datetime] = None
    team: Optional[str] = None
    team_code: Optional[str] = None

    @property
    def minutes_played(self) -> float:
        """Parse "mm:ss" (or a bare number) into fractional minutes."""
        return parse_minutes(self.minutes)

    def stat_value(self, stat_type: StatType) -> float:
        return float(sum(getattr(self, name) for name in stat_type.components))


def parse_minutes(value: Any) -> float:
    """Parse a minutes value such as "34:30" or "28" into minutes."""
    if value is None:
        return 0.0
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        if ":" in text:
            mins, secs = text.split(":", 1)
            return float(mins or 0) + float(secs or 0) / 60.0
        return float(text)
    except ValueError:
        return 0.0


@dataclass(frozen=True)
class DefenseRank:
    """League rank of a team by opponent points allowed (1 = stingiest)."""

    team: str
    rank: int
    points_allowed_per_game: float
    games_played: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "team": self.team,
            "rank": self.rank,
            "allowed": self.points_allowed_per_game,
            "stat": "PTS",
            "games_played": self.games_played,
        }


@dataclass(frozen=True)
class HitRate:
    """Count of games that beat a line within one window."""

    hits: int
    total: int
    pct: int

    def to_dict(self) -> dict[str, int]:
        return {"hits": self.hits, "total": self.total, "pct": self.pct}


@dataclass(frozen=True)
class HitRateSummary:
    """Hit rates against a single line over the standard windows."""

    l10: HitRate
    season: HitRate
    l5: Optional[HitRate] = None
    l20: Optional[HitRate] = None

    def to_dict(self) -> dict[str, Any]:
        result = {"l10": self.l10.to_dict(), "season": self.season.to_dict()}
        if self.l5 is not None:
            result["l5"] = self.l5.to_dict()
        if self.l20 is not None:
            result["l20"] = self.l20.to_dict()
        return result


@dataclass(frozen=True)
class Prediction:
    """Raw model output for one feature vector. Calibrated before any use."""

    side: Side
    raw_probability_over: float
    raw_probability_under: float
    confidence: Optional[float] = None


class HealthStatus(str, Enum):
    """Overall data-health verdict for one game."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


@dataclass(frozen=True)
class DataHealth:
    """Per-source availability and resolution ratios for one acquisition."""

    overall: HealthStatus
    standard_props: bool
    alt_props: bool
    defense: bool
    players_total: int = 0
    players_resolved: int = 0
    players_with_logs: int = 0
    issues: tuple[str, ...] = ()

    @property
    def resolution_rate(self) -> float:
        if self.players_total == 0:
            return 0.0
        return self.players_resolved / self.players_total

    @property
    def player_resolution(self) -> str:
        return f"{self.players_resolved}/{self.players_total}"

    @property
    def game_logs(self) -> str:
        return f"{self.players_with_logs}/{self.players_resolved}"

    @property
    def is_critical(self) -> bool:
        return self.overall is HealthStatus.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall.value,
            "standard_props": self.standard_props,
            "alt_props": self.alt_props,
            "defense": self.defense,
            "player_resolution": self.player_resolution,
            "resolution_rate": round(self.resolution_rate, 3),
            "game_logs": self.game_logs,
            "issues": list(self.issues),
        }


def _freeze(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class SharedData:
    """
    Everything both engines need for one game, fetched once.

    Mappings are wrapped read-only so neither engine can alter what the
    other sees.
    """

    event_id: str
    standard_props: tuple[Prop, ...]
    alt_props: tuple[AltProp, ...]
    player_id_map: Mapping[str, int]
    game_logs_map: Mapping[int, tuple[GameLogEntry, ...]]
    defense_ranks: Mapping[str, DefenseRank]
    health: DataHealth
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    game_time: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "standard_props", tuple(self.standard_props))
        object.__setattr__(self, "alt_props", tuple(self.alt_props))
        object.__setattr__(self, "player_id_map", _freeze(self.player_id_map))
        object.__setattr__(
            self,
            "game_logs_map",
            _freeze({pid: tuple(logs) for pid, logs in (self.game_logs_map or {}).items()}),
        )
        object.__setattr__(self, "defense_ranks", _freeze(self.defense_ranks))

    def logs_for(self, player_name: str) -> tuple[GameLogEntry, ...]:
        """Game logs for a player by name, empty when unresolved."""
        player_id = self.player_id_map.get(player_name)
        if player_id is None:
            return ()
        return self.game_logs_map.get(player_id, ())

    def opponent_of(self, team: Optional[str]) -> Optional[str]:
        """The other team in this game, given the player's team name."""
        if not team or not self.home_team or not self.away_team:
            return None
        if teams_match(team, self.home_team):
            return self.away_team
        if teams_match(team, self.away_team):
            return self.home_team
        return None

    def is_home(self, team: Optional[str]) -> bool:
        return bool(team and self.home_team and teams_match(team, self.home_team))

    def defense_for(self, team: Optional[str]) -> Optional[DefenseRank]:
        if not team:
            return None
        return self.defense_ranks.get(team_key(team))


def team_key(name: str) -> str:
    """Canonical lowercase key for a team name."""
    key = " ".join(name.strip().lower().split())
    return TEAM_ALIASES.get(key, key)


def teams_match(team: str, full_name: str) -> bool:
    """Loose team comparison: full name, or the nickname (last word)."""
    team_l = team.strip().lower()
    full_l = full_name.strip().lower()
    if not team_l or not full_l:
        return False
    if team_l == full_l:
        return True
    nickname = full_l.split()[-1]
    return nickname in team_l or team_l.split()[-1] == nickname
