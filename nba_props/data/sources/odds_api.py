"""
The Odds API client for NBA player prop lines.

Provides access to:
- Upcoming NBA events
- Standard player prop lines (one line per player-stat)
- Alternate player prop lines (ladder of lines per player-stat)

Features async HTTP with credit tracking, retry, and stale-fallback caching.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from ...config.constants import (
    ALT_MARKETS,
    STANDARD_MARKETS,
    Side,
    StatType,
    market_to_stat,
    normalize_bookmaker,
)
from ..models import AltLine, AltProp, Prop
from .base import CachedDataSource, RetryConfig


@dataclass
class EventProps:
    """Parsed prop lines for one event, keyed by (player, stat)."""

    event_id: str
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    commence_time: Optional[datetime] = None
    lines: dict[tuple[str, StatType], list[AltLine]] = field(default_factory=dict)

    @property
    def player_names(self) -> set[str]:
        return {player for player, _ in self.lines}

    def standard_props(self) -> list[Prop]:
        """One prop per player-stat, taking the first (lowest) line."""
        props = []
        for (player, stat), lines in self.lines.items():
            if not lines:
                continue
            first = lines[0]
            props.append(
                Prop(
                    player_name=player,
                    stat_type=stat,
                    line=first.line,
                    odds_over=first.odds_over,
                    odds_under=first.odds_under,
                    bookmaker_over=first.bookmaker_over,
                    bookmaker_under=first.bookmaker_under,
                )
            )
        return props

    def alt_props(self) -> list[AltProp]:
        return [
            AltProp(player_name=player, stat_type=stat, lines=tuple(lines))
            for (player, stat), lines in self.lines.items()
            if lines
        ]


class OddsAPIClient(CachedDataSource):
    """
    Async client for The Odds API (basketball_nba).

    Player prop requests cost credits per market per region, so standard
    and alternate markets are fetched once per event and shared by both
    scoring engines through the cache.
    """

    BASE_URL = "https://api.the-odds-api.com/v4"
    SPORT_KEY = "basketball_nba"

    DEFAULT_BOOKMAKERS = ["draftkings", "fanduel", "betmgm", "caesars", "espnbet"]

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        sport_key: Optional[str] = None,
        regions: list[str] | None = None,
        bookmakers: list[str] | None = None,
        timeout_seconds: float = 15.0,
        props_ttl: int = 300,
        props_stale_ttl: int = 1800,
        cache=None,
        retry_config: RetryConfig | None = None,
    ):
        super().__init__(
            source_name="odds_api",
            cache=cache,
            enabled=bool(api_key),
            retry_config=retry_config,
            timeout_seconds=timeout_seconds,
        )

        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.sport_key = sport_key or self.SPORT_KEY
        self.regions = regions or ["us"]
        self.bookmakers = bookmakers or self.DEFAULT_BOOKMAKERS
        self.props_ttl = props_ttl
        self.props_stale_ttl = props_stale_ttl

        # API credit tracking
        self._remaining_credits: int | None = None
        self._used_credits: int | None = None
        self._last_credit_check: datetime | None = None

        if not api_key:
            self.logger.warning("No API key provided - odds API will be disabled")

    @classmethod
    def from_settings(cls, settings, cache=None) -> "OddsAPIClient":
        """Create an OddsAPIClient from application settings."""
        return cls(
            api_key=settings.odds_api.api_key,
            base_url=settings.odds_api.base_url,
            sport_key=settings.odds_api.sport_key,
            regions=settings.odds_api.regions,
            bookmakers=settings.odds_api.bookmakers,
            timeout_seconds=settings.odds_api.timeout_seconds,
            props_ttl=settings.cache.props_ttl,
            props_stale_ttl=settings.cache.props_stale_ttl,
            cache=cache,
        )

    def _on_response_headers(self, headers: Any) -> None:
        """Update credit tracking from response headers."""
        if "x-requests-remaining" in headers:
            self._remaining_credits = int(float(headers["x-requests-remaining"]))
        if "x-requests-used" in headers:
            self._used_credits = int(float(headers["x-requests-used"]))
        self._last_credit_check = datetime.now()

        if self._remaining_credits is not None and self._remaining_credits < 100:
            self.logger.warning(
                f"Low API credits! Only {self._remaining_credits} remaining"
            )

    def get_credit_status(self) -> dict:
        """Get current API credit status."""
        return {
            "remaining": self._remaining_credits,
            "used": self._used_credits,
            "last_check": self._last_credit_check,
        }

    async def _get(self, endpoint: str, label: str, params: dict | None = None) -> Any:
        request_params = {"apiKey": self.api_key}
        if params:
            request_params.update(params)
        return await self.get_json(f"{self.base_url}/{endpoint}", label, params=request_params)

    async def get_events(self) -> list[dict]:
        """
        Get list of upcoming NBA events without odds.

        Returns:
            List of events (id, home_team, away_team, commence_time)
        """
        data = await self.fetch_cached(
            self._cache_key("events", self.sport_key),
            lambda: self._get(f"sports/{self.sport_key}/events", "events"),
            ttl_seconds=self.props_ttl,
            stale_ttl_seconds=self.props_stale_ttl,
        )
        events = data or []
        self.logger.info(f"Found {len(events)} upcoming NBA events")
        return events

    async def get_event_odds(self, event_id: str, markets: Sequence[str]) -> Optional[dict]:
        """
        Get raw odds for one event and set of markets.

        Returns None when the event has no current prices and nothing usable
        is cached.
        """
        params = {
            "regions": ",".join(self.regions),
            "markets": ",".join(markets),
            "oddsFormat": "american",
            "bookmakers": ",".join(self.bookmakers),
        }
        kind = "alt" if any(m.endswith("_alternate") for m in markets) else "std"
        return await self.fetch_cached(
            self._cache_key("event_odds", event_id, kind),
            lambda: self._get(
                f"sports/{self.sport_key}/events/{event_id}/odds", f"odds:{kind}", params
            ),
            ttl_seconds=self.props_ttl,
            stale_ttl_seconds=self.props_stale_ttl,
        )

    async def get_standard_props(self, event_id: str) -> EventProps:
        """Get standard player props for an event (first line per player-stat)."""
        data = await self.get_event_odds(event_id, STANDARD_MARKETS)
        parsed = self.parse_event_props(event_id, data)
        self.logger.info(f"Event {event_id}: {len(parsed.lines)} standard player-stat lines")
        return parsed

    async def get_alternate_props(self, event_id: str) -> EventProps:
        """Get alternate player prop ladders for an event."""
        data = await self.get_event_odds(event_id, ALT_MARKETS)
        parsed = self.parse_event_props(event_id, data)
        self.logger.info(f"Event {event_id}: {len(parsed.lines)} alternate player-stat ladders")
        return parsed

    @staticmethod
    def parse_event_props(event_id: str, data: Optional[dict]) -> EventProps:
        """
        Parse an event odds response into best-priced lines.

        Outcomes are grouped by (player, stat, line). For each side the
        highest price across bookmakers wins, and the bookmaker offering it
        is kept. Lines per player-stat are sorted ascending.
        """
        result = EventProps(event_id=event_id)
        if not data:
            return result

        result.home_team = data.get("home_team")
        result.away_team = data.get("away_team")
        result.commence_time = _parse_time(data.get("commence_time"))

        best: dict[tuple[str, StatType], dict[float, dict[str, Any]]] = {}

        for bookmaker in data.get("bookmakers", []):
            book_name = normalize_bookmaker(bookmaker.get("key", ""))
            for market in bookmaker.get("markets", []):
                stat = market_to_stat(market.get("key", ""))
                if stat is None:
                    continue
                for outcome in market.get("outcomes", []):
                    player = outcome.get("description")
                    point = outcome.get("point")
                    price = outcome.get("price")
                    side = _parse_side(outcome.get("name"))
                    if not player or point is None or price is None or side is None:
                        continue

                    slot = best.setdefault((player, stat), {}).setdefault(
                        float(point), {}
                    )
                    current = slot.get(side)
                    if current is None or price > current[0]:
                        slot[side] = (int(price), book_name)

        for key, by_line in best.items():
            lines = []
            for line in sorted(by_line):
                sides = by_line[line]
                over = sides.get(Side.OVER)
                under = sides.get(Side.UNDER)
                lines.append(
                    AltLine(
                        line=line,
                        odds_over=over[0] if over else None,
                        odds_under=under[0] if under else None,
                        bookmaker_over=over[1] if over else None,
                        bookmaker_under=under[1] if under else None,
                    )
                )
            result.lines[key] = lines

        return result


def find_best_goblin_line(
    lines: Sequence[AltLine],
    side: Side,
    player_avg: Optional[float],
    threshold: int = -400,
) -> Optional[AltLine]:
    """
    Pick the safest useful alternate line for a side.

    Only lines priced at or beyond ``threshold`` qualify. For Over the
    highest line still below the player's average wins; for Under the
    lowest line still above it. Without such a line, the most heavily
    priced qualifying line is returned.
    """
    candidates = [
        alt for alt in lines
        if alt.odds_for(side) is not None and alt.odds_for(side) <= threshold
    ]
    if not candidates:
        return None

    best = None
    if player_avg is not None:
        for alt in candidates:
            if side is Side.OVER and alt.line < player_avg:
                if best is None or alt.line > best.line:
                    best = alt
            elif side is Side.UNDER and alt.line > player_avg:
                if best is None or alt.line < best.line:
                    best = alt

    if best is None:
        best = min(candidates, key=lambda alt: alt.odds_for(side))
    return best


def _parse_side(name: Any) -> Optional[Side]:
    if not isinstance(name, str):
        return None
    lowered = name.strip().lower()
    if lowered == "over":
        return Side.OVER
    if lowered == "under":
        return Side.UNDER
    return None


def _parse_time(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
