"""
API-Sports NBA client for player identity and game logs.

Provides:
- Player name -> provider id resolution (last-name search with
  exact, substring and first-result matching)
- Per-player game logs, most recent first
- Batched variants that bound concurrent calls against the provider
"""
from __future__ import annotations

import asyncio
import re
from datetime import date, datetime
from typing import Any, Iterable, Optional

from ..models import GameLogEntry
from .base import CachedDataSource, ConfigurationError, DataNotAvailableError, RetryConfig

_NON_LETTERS = re.compile(r"[^a-z\s]")


def normalize_player_name(name: str) -> str:
    """Lowercase, letters and spaces only ("De'Aaron Fox" -> "deaaron fox")."""
    return " ".join(_NON_LETTERS.sub("", name.lower()).split())


def current_season(today: Optional[date] = None) -> int:
    """NBA season year: October onward belongs to the season starting that year."""
    today = today or date.today()
    return today.year if today.month >= 10 else today.year - 1


def match_player(name: str, candidates: list[dict]) -> Optional[int]:
    """
    Pick the provider id for ``name`` from search results.

    Exact normalized full-name match first, then substring in either
    direction, then the first result.
    """
    if not candidates:
        return None

    target = normalize_player_name(name)
    full_names = [
        normalize_player_name(f"{c.get('firstname') or ''} {c.get('lastname') or ''}")
        for c in candidates
    ]

    for candidate, full_name in zip(candidates, full_names):
        if full_name == target:
            return candidate.get("id")

    for candidate, full_name in zip(candidates, full_names):
        if full_name and (target in full_name or full_name in target):
            return candidate.get("id")

    return candidates[0].get("id")


def parse_game_log(raw: dict) -> GameLogEntry:
    """Convert one players/statistics row into a GameLogEntry."""
    game = raw.get("game") or {}
    team = raw.get("team") or {}

    def num(key: str) -> float:
        value = raw.get(key)
        try:
            return float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    game_date = None
    date_value = game.get("date")
    if isinstance(date_value, dict):
        date_value = date_value.get("start")
    if date_value:
        try:
            game_date = datetime.fromisoformat(str(date_value).replace("Z", "+00:00"))
        except ValueError:
            game_date = None

    return GameLogEntry(
        points=num("points"),
        rebounds=num("totReb"),
        assists=num("assists"),
        steals=num("steals"),
        blocks=num("blocks"),
        turnovers=num("turnovers"),
        threes_made=num("tpm"),
        threes_attempted=num("tpa"),
        fgm=num("fgm"),
        fga=num("fga"),
        ftm=num("ftm"),
        fta=num("fta"),
        minutes=str(raw.get("min") or "0"),
        game_id=game.get("id"),
        game_date=game_date,
        team=team.get("name"),
        team_code=team.get("code"),
    )


class PlayerStatsClient(CachedDataSource):
    """
    Async client for API-Sports NBA player endpoints.

    Player ids are cached long (names rarely move between ids); game logs
    are cached for an hour with a day-long stale ceiling.

    Example:
        >>> client = PlayerStatsClient(api_key="...")
        >>> ids = await client.resolve_player_ids(["Jalen Brunson"])
        >>> logs = await client.get_game_logs_batch(ids.values())
    """

    BASE_URL = "https://v2.nba.api-sports.io"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        id_batch_size: int = 5,
        log_batch_size: int = 4,
        max_game_logs: int = 82,
        game_logs_ttl: int = 3600,
        game_logs_stale_ttl: int = 86400,
        player_ids_ttl: int = 86400,
        player_ids_stale_ttl: int = 604800,
        cache=None,
        retry_config: RetryConfig | None = None,
    ):
        super().__init__(
            source_name="player_stats",
            cache=cache,
            enabled=bool(api_key),
            retry_config=retry_config,
            timeout_seconds=timeout_seconds,
        )
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.id_batch_size = id_batch_size
        self.log_batch_size = log_batch_size
        self.max_game_logs = max_game_logs
        self.game_logs_ttl = game_logs_ttl
        self.game_logs_stale_ttl = game_logs_stale_ttl
        self.player_ids_ttl = player_ids_ttl
        self.player_ids_stale_ttl = player_ids_stale_ttl

        if not api_key:
            self.logger.warning("No API key provided - player stats will be disabled")

    @classmethod
    def from_settings(cls, settings, cache=None) -> "PlayerStatsClient":
        ps = settings.player_stats
        return cls(
            api_key=ps.api_key,
            base_url=ps.base_url,
            timeout_seconds=ps.timeout_seconds,
            id_batch_size=ps.id_batch_size,
            log_batch_size=ps.log_batch_size,
            max_game_logs=ps.max_game_logs,
            game_logs_ttl=settings.cache.game_logs_ttl,
            game_logs_stale_ttl=settings.cache.game_logs_stale_ttl,
            player_ids_ttl=settings.cache.player_ids_ttl,
            player_ids_stale_ttl=settings.cache.player_ids_stale_ttl,
            cache=cache,
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {"x-apisports-key": self.api_key}

    async def _get_response(self, endpoint: str, label: str, params: dict) -> list[dict]:
        data = await self.get_json(
            f"{self.base_url}/{endpoint}", label, params=params, headers=self._headers
        )
        errors = (data or {}).get("errors")
        if errors:
            # API-Sports reports quota and parameter problems in-band with HTTP 200
            raise DataNotAvailableError(self.source_name, f"API errors: {errors}")
        return (data or {}).get("response") or []

    async def resolve_player_id(self, player_name: str) -> Optional[int]:
        """Resolve a player's display name to an API-Sports id, or None."""
        last_name = player_name.strip().split(" ")[-1]
        if not last_name:
            return None

        async def _search() -> Optional[int]:
            results = await self._get_response(
                "players", "players:search", {"search": last_name}
            )
            return match_player(player_name, results)

        player_id = await self.fetch_cached(
            self._cache_key("player_id", normalize_player_name(player_name)),
            _search,
            ttl_seconds=self.player_ids_ttl,
            stale_ttl_seconds=self.player_ids_stale_ttl,
        )
        if player_id is None:
            self.logger.debug(f"Player not resolved: {player_name}")
        return player_id

    async def resolve_player_ids(self, player_names: Iterable[str]) -> dict[str, Optional[int]]:
        """Resolve names in fixed-size batches. Unresolved names map to None."""
        names = list(dict.fromkeys(player_names))
        result: dict[str, Optional[int]] = {}
        for start in range(0, len(names), self.id_batch_size):
            batch = names[start:start + self.id_batch_size]
            ids = await asyncio.gather(
                *(self.resolve_player_id(name) for name in batch),
                return_exceptions=True,
            )
            for name, player_id in zip(batch, ids):
                if isinstance(player_id, ConfigurationError):
                    raise player_id
                if isinstance(player_id, BaseException):
                    self.logger.warning(f"Player id lookup failed for {name}: {player_id}")
                    player_id = None
                result[name] = player_id
        return result

    async def get_game_logs(
        self, player_id: int, season: Optional[int] = None
    ) -> list[GameLogEntry]:
        """
        Game logs for a player, most recent first, at most ``max_game_logs``.

        Falls back to the previous season when the current one has no games
        yet (early October, or players returning from injury).
        """
        season = season or current_season()

        async def _fetch() -> list[dict]:
            rows = await self._get_response(
                "players/statistics", "game_logs", {"season": season, "id": player_id}
            )
            if not rows:
                rows = await self._get_response(
                    "players/statistics", "game_logs", {"season": season - 1, "id": player_id}
                )
            rows.sort(key=lambda r: (r.get("game") or {}).get("id") or 0, reverse=True)
            return rows[: self.max_game_logs]

        rows = await self.fetch_cached(
            self._cache_key("game_logs", player_id, season),
            _fetch,
            ttl_seconds=self.game_logs_ttl,
            stale_ttl_seconds=self.game_logs_stale_ttl,
            is_empty=lambda value: not value,
        )
        return [parse_game_log(row) for row in rows or []]

    async def get_game_logs_batch(
        self, player_ids: Iterable[Optional[int]], season: Optional[int] = None
    ) -> dict[int, list[GameLogEntry]]:
        """Fetch logs for many players in fixed-size batches."""
        ids = [pid for pid in dict.fromkeys(player_ids) if pid is not None]
        result: dict[int, list[GameLogEntry]] = {}
        for start in range(0, len(ids), self.log_batch_size):
            batch = ids[start:start + self.log_batch_size]
            logs = await asyncio.gather(
                *(self.get_game_logs(pid, season) for pid in batch),
                return_exceptions=True,
            )
            for pid, player_logs in zip(batch, logs):
                if isinstance(player_logs, ConfigurationError):
                    raise player_logs
                if isinstance(player_logs, BaseException):
                    self.logger.warning(f"Game logs failed for player {pid}: {player_logs}")
                    player_logs = []
                result[pid] = player_logs
        return result
