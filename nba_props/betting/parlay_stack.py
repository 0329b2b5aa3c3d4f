"""
Parlay Stack: rule-validated alternate-line legs.

No model call. Every alternate line is checked on both sides against five
deterministic signals; a leg is kept only when all of them pass:

1. Goblin band: odds between the floor (-650) and the ceiling (-400)
2. L10 hit rate against the alternate line (60/40)
3. Season hit rate against the alternate line (50/50)
4. L10 average clears the line by the minimum margin
5. Opponent defense does not contradict the side
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Sequence

from loguru import logger

from nba_props.config.constants import Side, StatType
from nba_props.config.settings import ParlayStackSettings
from nba_props.data.models import DefenseRank, GameLogEntry, HitRateSummary, SharedData
from nba_props.features.hit_rates import (
    directional_fraction,
    directional_pct,
    get_hit_rates,
    l10_average,
    trend,
)

from .odds_converter import implied_probability
from .signals import calculate_green_score


@dataclass(frozen=True)
class LegCandidate:
    """One side of one alternate line."""

    player_name: str
    stat_type: StatType
    side: Side
    line: float
    odds: int
    bookmaker: Optional[str] = None


@dataclass(frozen=True)
class LegValidation:
    accepted: bool
    reason: str
    hit_rates: Optional[HitRateSummary] = None
    l10_avg: Optional[float] = None


def validate_leg(
    candidate: LegCandidate,
    game_logs: Sequence[GameLogEntry],
    defense: Optional[DefenseRank],
    settings: Optional[ParlayStackSettings] = None,
) -> LegValidation:
    """
    Apply the five signals in order.

    The reason of a rejection names the first signal that failed:
    ``insufficient_logs``, ``no_average``, ``goblin_band``, ``l10_hit_rate``,
    ``season_hit_rate``, ``margin`` or ``defense``.
    """
    settings = settings or ParlayStackSettings()
    is_over = candidate.side is Side.OVER

    if len(game_logs) < settings.min_game_logs:
        return LegValidation(False, "insufficient_logs")

    avg = l10_average(game_logs, candidate.stat_type)
    if avg is None:
        return LegValidation(False, "no_average")

    if not settings.goblin_floor <= candidate.odds <= settings.goblin_ceiling:
        return LegValidation(False, "goblin_band", l10_avg=avg)

    hit_rates = get_hit_rates(game_logs, candidate.stat_type, candidate.line)

    l10_pct = hit_rates.l10.pct
    if (is_over and l10_pct < settings.min_l10_hit_rate) or (
        not is_over and l10_pct > 100 - settings.min_l10_hit_rate
    ):
        return LegValidation(False, "l10_hit_rate", hit_rates, avg)

    season_pct = hit_rates.season.pct
    if (is_over and season_pct < settings.min_season_hit_rate) or (
        not is_over and season_pct > 100 - settings.min_season_hit_rate
    ):
        return LegValidation(False, "season_hit_rate", hit_rates, avg)

    if (is_over and avg < candidate.line + settings.min_margin) or (
        not is_over and avg > candidate.line - settings.min_margin
    ):
        return LegValidation(False, "margin", hit_rates, avg)

    if defense is not None:
        if (is_over and defense.rank <= settings.strong_defense_rank) or (
            not is_over and defense.rank >= settings.weak_defense_rank
        ):
            return LegValidation(False, "defense", hit_rates, avg)

    return LegValidation(True, "accepted", hit_rates, avg)


def parlay_edge(hit_rates: HitRateSummary, side: Side, odds: int) -> float:
    """Directional L10 hit fraction minus the odds-implied probability, 4 dp."""
    return round(directional_fraction(hit_rates.l10, side) - implied_probability(odds), 4)


@dataclass(frozen=True)
class ParlayLeg:
    """An alternate line that passed every signal."""

    player_name: str
    stat_type: StatType
    side: Side
    line: float
    odds: int
    bookmaker: Optional[str]
    hit_rates: HitRateSummary
    l10_avg: float
    avg_margin: float
    parlay_edge: float
    green_score: int
    green_signals: tuple[str, ...]
    trend: float = 0.0
    opponent_defense: Optional[DefenseRank] = None
    team: Optional[str] = None
    opponent: Optional[str] = None
    is_home: bool = False
    player_id: Optional[int] = None
    event_id: Optional[str] = None

    @property
    def dedupe_key(self) -> tuple:
        return (self.player_name, self.stat_type, self.side, self.bookmaker)

    @property
    def game_key(self) -> tuple[str, ...]:
        """Order-independent identity of the game this leg belongs to."""
        return tuple(sorted((self.team or "", self.opponent or "")))

    @property
    def directional_l10_pct(self) -> int:
        return directional_pct(self.hit_rates.l10, self.side)

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_name": self.player_name,
            "player_id": self.player_id,
            "team": self.team,
            "opponent": self.opponent,
            "is_home": self.is_home,
            "event_id": self.event_id,
            "stat_type": self.stat_type.value,
            "prediction": self.side.value,
            "alt_line": self.line,
            "alt_odds": self.odds,
            "bookmaker": self.bookmaker,
            "l10_avg": self.l10_avg,
            "avg_margin": self.avg_margin,
            "trend": self.trend,
            "hit_rates": self.hit_rates.to_dict(),
            "opponent_defense": self.opponent_defense.to_dict() if self.opponent_defense else None,
            "green_score": self.green_score,
            "green_signals": list(self.green_signals),
            "parlay_edge": self.parlay_edge,
        }


@dataclass
class ParlayStackResult:
    """Validated legs for one game plus rejection counts by signal."""

    event_id: str
    legs: list[ParlayLeg] = field(default_factory=list)
    total_alt_lines: int = 0
    candidates: int = 0
    accepted: int = 0
    rejections: Counter = field(default_factory=Counter)
    computed_at: datetime = field(default_factory=datetime.now)

    @property
    def diagnostics(self) -> dict[str, Any]:
        return {
            "total_alt_lines": self.total_alt_lines,
            "candidates": self.candidates,
            "accepted": self.accepted,
            "returned": len(self.legs),
            "rejections": dict(self.rejections),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "legs": [leg.to_dict() for leg in self.legs],
            "diagnostics": self.diagnostics,
            "computed_at": self.computed_at.isoformat(),
        }


class ParlayStackEngine:
    """
    Validates every alternate line for one game.

    Example:
        >>> engine = ParlayStackEngine()
        >>> stack = await engine.run(shared_data)
        >>> stack.legs[0].parlay_edge
        0.1923
    """

    def __init__(self, settings: Optional[ParlayStackSettings] = None):
        self.settings = settings or ParlayStackSettings()
        self.logger = logger.bind(component="parlay_stack")

    @classmethod
    def from_settings(cls, settings) -> "ParlayStackEngine":
        return cls(settings.parlay_stack)

    async def run(self, shared: SharedData) -> ParlayStackResult:
        """Build, rank and dedupe the legs for one game."""
        result = ParlayStackResult(
            event_id=shared.event_id,
            total_alt_lines=sum(len(alt.lines) for alt in shared.alt_props),
        )
        if not shared.alt_props:
            self.logger.info(f"Event {shared.event_id}: no alternate lines")
            return result

        legs: list[ParlayLeg] = []
        for alt_prop in shared.alt_props:
            logs = shared.logs_for(alt_prop.player_name)
            team = logs[0].team if logs else None
            is_home = shared.is_home(team)
            opponent = shared.opponent_of(team)
            own_team = shared.opponent_of(opponent) if opponent else team
            defense = shared.defense_for(opponent)

            for alt in alt_prop.lines:
                for side in (Side.OVER, Side.UNDER):
                    odds = alt.odds_for(side)
                    if odds is None:
                        continue
                    candidate = LegCandidate(
                        player_name=alt_prop.player_name,
                        stat_type=alt_prop.stat_type,
                        side=side,
                        line=alt.line,
                        odds=odds,
                        bookmaker=alt.bookmaker_for(side),
                    )
                    result.candidates += 1
                    validation = validate_leg(candidate, logs, defense, self.settings)
                    if not validation.accepted:
                        result.rejections[validation.reason] += 1
                        self.logger.debug(
                            f"Rejected {candidate.player_name} {side.value} {alt.line} "
                            f"{candidate.stat_type.label} at {odds}: {validation.reason}"
                        )
                        continue

                    legs.append(
                        self._build_leg(
                            shared, candidate, validation, logs, defense,
                            own_team, opponent, is_home,
                        )
                    )

        result.accepted = len(legs)
        legs.sort(key=lambda leg: leg.parlay_edge, reverse=True)

        seen = set()
        for leg in legs:
            if leg.dedupe_key in seen:
                continue
            seen.add(leg.dedupe_key)
            result.legs.append(leg)

        self.logger.info(
            f"Event {shared.event_id}: {len(result.legs)} validated legs "
            f"(from {result.accepted} accepted of {result.candidates} candidates)"
        )
        return result

    def _build_leg(
        self,
        shared: SharedData,
        candidate: LegCandidate,
        validation: LegValidation,
        logs: Sequence[GameLogEntry],
        defense: Optional[DefenseRank],
        team: Optional[str],
        opponent: Optional[str],
        is_home: bool,
    ) -> ParlayLeg:
        avg = validation.l10_avg
        hit_rates = validation.hit_rates
        margin = avg - candidate.line if candidate.side is Side.OVER else candidate.line - avg
        green = calculate_green_score(
            candidate.side, avg, candidate.line, hit_rates, defense, candidate.odds
        )
        return ParlayLeg(
            player_name=candidate.player_name,
            stat_type=candidate.stat_type,
            side=candidate.side,
            line=candidate.line,
            odds=candidate.odds,
            bookmaker=candidate.bookmaker,
            hit_rates=hit_rates,
            l10_avg=round(avg, 1),
            avg_margin=round(margin, 1),
            parlay_edge=parlay_edge(hit_rates, candidate.side, candidate.odds),
            green_score=green.score,
            green_signals=green.signals,
            trend=trend(logs, candidate.stat_type),
            opponent_defense=defense,
            team=team,
            opponent=opponent,
            is_home=is_home,
            player_id=shared.player_id_map.get(candidate.player_name),
            event_id=shared.event_id,
        )
