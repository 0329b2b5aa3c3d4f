"""
Parlay slip assembly.

Slips are built from legs that already passed the Parlay Stack; nothing is
re-validated here. Three policies are offered:

- LOCK: highest edge first, spread across games
- SAFE: only legs hitting 80%+ in their direction over the last 10
- VALUE: positive-edge legs, lightest juice first
"""
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from nba_props.config.constants import SAFE_SLIP_MIN_HIT_RATE, SLIP_SIZE

from .odds_converter import combined_american_odds, format_american_odds
from .parlay_stack import ParlayLeg


@dataclass(frozen=True)
class ParlaySlip:
    """A named bundle of legs with no repeated player."""

    name: str
    subtitle: str
    legs: tuple[ParlayLeg, ...]
    combined_odds: int

    @classmethod
    def from_legs(cls, name: str, subtitle: str, legs: Sequence[ParlayLeg]) -> "ParlaySlip":
        return cls(
            name=name,
            subtitle=subtitle,
            legs=tuple(legs),
            combined_odds=combined_american_odds(leg.odds for leg in legs),
        )

    @property
    def combined_odds_display(self) -> str:
        return format_american_odds(self.combined_odds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "subtitle": self.subtitle,
            "legs": [leg.to_dict() for leg in self.legs],
            "combined_odds": self.combined_odds,
            "combined_odds_display": self.combined_odds_display,
        }


def pick_legs(pool: Iterable[ParlayLeg], count: int, prefer_diversity: bool = True) -> list[ParlayLeg]:
    """
    Greedy picker over an already ordered pool.

    A player is used at most once. With ``prefer_diversity`` a leg from a
    game already in the slip is deferred; deferred legs fill the slip only
    when the first pass comes up short.
    """
    picked: list[ParlayLeg] = []
    used_players: set[str] = set()
    used_games: set[tuple[str, ...]] = set()
    deferred: list[ParlayLeg] = []

    for leg in pool:
        if leg.player_name in used_players:
            continue
        if prefer_diversity and leg.game_key in used_games:
            deferred.append(leg)
            continue
        used_players.add(leg.player_name)
        used_games.add(leg.game_key)
        picked.append(leg)
        if len(picked) >= count:
            return picked

    for leg in deferred:
        if leg.player_name in used_players:
            continue
        used_players.add(leg.player_name)
        picked.append(leg)
        if len(picked) >= count:
            return picked

    return picked


def build_slips(legs: Sequence[ParlayLeg], size: int = SLIP_SIZE) -> list[ParlaySlip]:
    """
    Assemble the LOCK, SAFE and VALUE slips from a cross-game leg pool.

    A slip is only emitted when its policy can fill ``size`` legs.
    """
    if len(legs) < size:
        return []

    by_edge = sorted(legs, key=lambda leg: leg.parlay_edge, reverse=True)
    slips: list[ParlaySlip] = []

    lock = pick_legs(by_edge, size)
    if len(lock) >= size:
        slips.append(ParlaySlip.from_legs("LOCK", "Highest edge across games", lock))

    safe_pool = [leg for leg in by_edge if leg.directional_l10_pct >= SAFE_SLIP_MIN_HIT_RATE]
    safe = pick_legs(safe_pool, size)
    if len(safe) >= size:
        slips.append(ParlaySlip.from_legs("SAFE", "80%+ hit rate, maximum safety", safe))

    value_pool = sorted(
        (leg for leg in by_edge if leg.parlay_edge > 0),
        key=lambda leg: abs(leg.odds),
    )
    value = pick_legs(value_pool, size)
    if len(value) >= size:
        slips.append(ParlaySlip.from_legs("VALUE", "Best payout-to-safety ratio", value))

    return slips
