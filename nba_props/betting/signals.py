"""
Historical-evidence signals shared by both scoring engines.

- Green score: how many of five independent signals back a pick (0-5)
- Sanity filter: rejects model picks that contradict the player's average
  unless at least two other signals corroborate them
- Stat trend read back from a built feature vector
"""
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from nba_props.config.constants import (
    GREEN_DEFENSE_PIVOT_RANK,
    HIT_RATE_OVER_THRESHOLD,
    HIT_RATE_UNDER_THRESHOLD,
    SANITY_STRONG_DEFENSE_RANK,
    SANITY_WEAK_DEFENSE_RANK,
    Side,
    StatType,
)
from nba_props.data.models import DefenseRank, HitRateSummary


@dataclass(frozen=True)
class GreenScore:
    """Number of supporting signals and their names, in evaluation order."""

    score: int
    signals: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "signals": list(self.signals)}


@dataclass(frozen=True)
class SanityResult:
    passed: bool
    reason: str


def avg_on_side(side: Side, l10_avg: float, line: float) -> bool:
    """Average at or beyond the line in the pick's direction."""
    return l10_avg >= line if side is Side.OVER else l10_avg <= line


def hit_rate_supports(side: Side, pct: int) -> bool:
    """60/40 hit-rate threshold used by the green score and the sanity filter."""
    if side is Side.OVER:
        return pct >= HIT_RATE_OVER_THRESHOLD
    return pct <= HIT_RATE_UNDER_THRESHOLD


def calculate_green_score(
    side: Side,
    l10_avg: Optional[float],
    line: float,
    hit_rates: Optional[HitRateSummary],
    opponent_defense: Optional[DefenseRank],
    relevant_odds: Optional[int],
) -> GreenScore:
    """
    Count the signals that support ``side``.

    Signals:
        avg: L10 average on the pick's side of the line
        l10: L10 hit rate >= 60 (Over) or <= 40 (Under)
        season: season hit rate, same thresholds
        defense: opponent rank > 15 for Over (soft defense), <= 15 for Under
        odds: the relevant price is negative (market agrees)

    Missing inputs simply contribute nothing.
    """
    signals: list[str] = []

    if l10_avg is not None and avg_on_side(side, l10_avg, line):
        signals.append("avg")

    if hit_rates is not None:
        if hit_rate_supports(side, hit_rates.l10.pct):
            signals.append("l10")
        if hit_rate_supports(side, hit_rates.season.pct):
            signals.append("season")

    if opponent_defense is not None:
        rank = opponent_defense.rank
        if (side is Side.OVER and rank > GREEN_DEFENSE_PIVOT_RANK) or (
            side is Side.UNDER and rank <= GREEN_DEFENSE_PIVOT_RANK
        ):
            signals.append("defense")

    if relevant_odds is not None and relevant_odds < 0:
        signals.append("odds")

    return GreenScore(score=len(signals), signals=tuple(signals))


def passes_sanity_check(
    side: Side,
    l10_avg: Optional[float],
    line: float,
    hit_rates: Optional[HitRateSummary],
    opponent_defense: Optional[DefenseRank],
) -> SanityResult:
    """
    Avg-gated sanity check.

    Passes outright when there is no average to compare, the line is 0, or
    the average sits on the predicted side. Otherwise at least two of
    defense rank (>= 21 Over / <= 10 Under), L10 hit rate and season hit
    rate (60/40) must support the pick.
    """
    if l10_avg is None or line == 0:
        return SanityResult(True, "insufficient_data")

    if avg_on_side(side, l10_avg, line):
        return SanityResult(True, "avg_supports")

    supporting = 0
    details = [f"avg {l10_avg:.1f} on wrong side of line {line}"]

    if opponent_defense is not None:
        rank = opponent_defense.rank
        if side is Side.OVER:
            defense_supports = rank >= SANITY_WEAK_DEFENSE_RANK
        else:
            defense_supports = rank <= SANITY_STRONG_DEFENSE_RANK
        if defense_supports:
            supporting += 1
        else:
            details.append(f"DEF rank {rank} does not support")

    if hit_rates is not None:
        for name, rate in (("L10", hit_rates.l10), ("Season", hit_rates.season)):
            if hit_rate_supports(side, rate.pct):
                supporting += 1
            else:
                details.append(f"{name} hit {rate.pct}% does not support")

    if supporting >= 2:
        return SanityResult(True, f"avg wrong side but {supporting}/3 signals support")
    return SanityResult(False, f"avg wrong side, only {supporting}/3 support: {'; '.join(details)}")


_TREND_PARTS = {
    "points": ("L3_PTS", "L10_PTS"),
    "rebounds": ("L3_REB", "L10_REB"),
    "assists": ("L3_AST", "L10_AST"),
    "steals": ("L3_STL", "L10_STL"),
    "blocks": ("L3_BLK", "L10_BLK"),
    "turnovers": ("L3_TOV", "L10_TOV"),
    "threes_made": ("L3_FG3M", "L10_FG3M"),
}


def trend_for_stat(features: Mapping[str, Any], stat_type: StatType) -> float:
    """L3 minus L10 for a stat, summing components for composites."""
    total = 0.0
    for component in stat_type.components:
        recent, baseline = _TREND_PARTS[component]
        total += float(features.get(recent) or 0.0) - float(features.get(baseline) or 0.0)
    return total
