"""
Hit-rate, average and trend helpers over a player's game logs.

Game logs are always most recent first. A "hit" is a game whose stat
value is strictly greater than the line, so a push counts as a miss for
Over and as a hit for Under when the Under rate is taken as 100 - pct.
"""
import math
from typing import Optional, Sequence

from nba_props.config.constants import Side, StatType
from nba_props.data.models import GameLogEntry, HitRate, HitRateSummary


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def stat_values(game_logs: Sequence[GameLogEntry], stat_type: StatType) -> list[float]:
    """Per-game values of a (possibly composite) stat, most recent first."""
    return [log.stat_value(stat_type) for log in game_logs]


def calculate_hit_rate(values: Sequence[float], line: float) -> HitRate:
    """Hits over ``line``; pct is a whole-number percentage, 0 when empty."""
    total = len(values)
    hits = sum(1 for value in values if value > line)
    pct = int(_round_half_up(hits / total * 100)) if total else 0
    return HitRate(hits=hits, total=total, pct=pct)


def get_hit_rates(
    game_logs: Sequence[GameLogEntry],
    stat_type: StatType,
    line: float,
) -> HitRateSummary:
    """
    Hit rates against ``line`` for the L5, L10, L20 and season windows.

    Season means every log supplied (the player stats client already caps
    history at one season).
    """
    values = stat_values(game_logs, stat_type)
    return HitRateSummary(
        l10=calculate_hit_rate(values[:10], line),
        season=calculate_hit_rate(values, line),
        l5=calculate_hit_rate(values[:5], line),
        l20=calculate_hit_rate(values[:20], line),
    )


def window_average(
    game_logs: Sequence[GameLogEntry],
    stat_type: StatType,
    window: int,
) -> Optional[float]:
    """Unrounded mean of the most recent ``window`` values, None when empty."""
    values = stat_values(game_logs[:window], stat_type)
    if not values:
        return None
    return sum(values) / len(values)


def l10_average(game_logs: Sequence[GameLogEntry], stat_type: StatType) -> Optional[float]:
    """L10 average rounded to one decimal, None without logs."""
    average = window_average(game_logs, stat_type, 10)
    if average is None:
        return None
    return _round_half_up(average, 1)


def trend(game_logs: Sequence[GameLogEntry], stat_type: StatType) -> float:
    """L3 average minus L10 average to one decimal; 0 when either is missing."""
    l3 = window_average(game_logs, stat_type, 3)
    l10 = window_average(game_logs, stat_type, 10)
    if l3 is None or l10 is None:
        return 0.0
    return _round_half_up(l3 - l10, 1)


def directional_pct(hit_rate: HitRate, side: Side) -> int:
    """Hit percentage from the side's point of view (Under = 100 - pct)."""
    return hit_rate.pct if side is Side.OVER else 100 - hit_rate.pct


def directional_fraction(hit_rate: HitRate, side: Side) -> float:
    return directional_pct(hit_rate, side) / 100
