"""
League-wide defensive rankings from API-Sports game scores.

One call returns every game of the season; finished games are reduced to
opponent points allowed per team and ranked (1 = fewest allowed). The
ranking is recomputed at most once per cache window and, when a refresh
fails or too few games are final, the previous ranking is served up to the
stale ceiling.
"""
from __future__ import annotations

from typing import Optional

import polars as pl

from ..models import DefenseRank, team_key
from .base import CachedDataSource, DataNotAvailableError, RetryConfig
from .player_stats import current_season


def rank_defenses(games: list[dict]) -> dict[str, DefenseRank]:
    """
    Rank teams by opponent points allowed per finished game.

    Args:
        games: Raw ``games`` rows with ``teams`` and ``scores`` blocks

    Returns:
        Mapping of canonical team key -> DefenseRank
    """
    teams: list[str] = []
    allowed: list[float] = []
    for game in games:
        scores = game.get("scores") or {}
        home_pts = (scores.get("home") or {}).get("points")
        away_pts = (scores.get("visitors") or {}).get("points")
        if not home_pts or not away_pts:
            continue
        home = team_key(((game.get("teams") or {}).get("home") or {}).get("name") or "")
        away = team_key(((game.get("teams") or {}).get("visitors") or {}).get("name") or "")
        if not home or not away:
            continue
        teams.extend([home, away])
        allowed.extend([float(away_pts), float(home_pts)])

    if not teams:
        return {}

    ranked = (
        pl.DataFrame({"team": teams, "allowed": allowed})
        .group_by("team")
        .agg(
            pl.col("allowed").mean().round(1).alias("opp_pts"),
            pl.len().alias("games_played"),
        )
        .sort(["opp_pts", "team"])
        .with_row_index("rank", offset=1)
    )

    return {
        row["team"]: DefenseRank(
            team=row["team"],
            rank=int(row["rank"]),
            points_allowed_per_game=float(row["opp_pts"]),
            games_played=int(row["games_played"]),
        )
        for row in ranked.iter_rows(named=True)
    }


def count_finished(games: list[dict]) -> int:
    finished = 0
    for game in games:
        scores = game.get("scores") or {}
        if (scores.get("home") or {}).get("points") and (scores.get("visitors") or {}).get("points"):
            finished += 1
    return finished


class DefenseClient(CachedDataSource):
    """
    Computes opponent defensive ranks from the API-Sports ``games`` endpoint.

    The single league-wide entry is the only cache key shared across games
    in a batch; concurrent refreshes write identical content, so the last
    writer winning is harmless.
    """

    BASE_URL = "https://v2.nba.api-sports.io"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout_seconds: float = 20.0,
        min_finished_games: int = 100,
        defense_ttl: int = 86400,
        defense_stale_ttl: int = 259200,
        cache=None,
        retry_config: RetryConfig | None = None,
    ):
        super().__init__(
            source_name="defense",
            cache=cache,
            enabled=bool(api_key),
            retry_config=retry_config,
            timeout_seconds=timeout_seconds,
        )
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.min_finished_games = min_finished_games
        self.defense_ttl = defense_ttl
        self.defense_stale_ttl = defense_stale_ttl

    @classmethod
    def from_settings(cls, settings, cache=None) -> "DefenseClient":
        ps = settings.player_stats
        return cls(
            api_key=ps.api_key,
            base_url=ps.base_url,
            timeout_seconds=ps.defense_timeout_seconds,
            min_finished_games=ps.min_finished_games,
            defense_ttl=settings.cache.defense_ttl,
            defense_stale_ttl=settings.cache.defense_stale_ttl,
            cache=cache,
        )

    async def _fetch_rankings(self, season: int) -> dict[str, DefenseRank]:
        data = await self.get_json(
            f"{self.base_url}/games",
            "games",
            params={"season": season, "league": "standard"},
            headers={"x-apisports-key": self.api_key},
        )
        games = (data or {}).get("response") or []
        finished = count_finished(games)
        self.logger.info(f"{finished} finished games from {len(games)} total")

        if finished < self.min_finished_games:
            raise DataNotAvailableError(
                self.source_name,
                f"Only {finished} finished games; need {self.min_finished_games}",
            )

        ranks = rank_defenses(games)
        self.logger.info(f"Defensive rankings computed for {len(ranks)} teams")
        return ranks

    async def get_defense_rankings(self, season: Optional[int] = None) -> dict[str, DefenseRank]:
        """League defense ranks keyed by canonical team name; empty if unavailable."""
        season = season or current_season()

        async def _operation() -> dict[str, DefenseRank]:
            return await self._fetch_rankings(season)

        ranks = await self.fetch_cached(
            self._cache_key("rankings", season),
            _operation,
            ttl_seconds=self.defense_ttl,
            stale_ttl_seconds=self.defense_stale_ttl,
            is_empty=lambda value: not value,
        )
        return ranks or {}


def get_opponent_defense(
    rankings: dict[str, DefenseRank], opponent_team: Optional[str]
) -> Optional[DefenseRank]:
    """Look up the opponent's rank (points allowed is used for every stat type)."""
    if not rankings or not opponent_team:
        return None
    return rankings.get(team_key(opponent_team))
