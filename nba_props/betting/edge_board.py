"""
EdgeBoard: ML-ranked value props.

Turns standard props with game logs into ranked EdgeResults:

1. Build a feature vector for every enriched prop
2. Batch the vectors through the remote model
3. Calibrate (temperature scaling) and cap each probability
4. Drop picks the player's history contradicts (sanity filter)
5. Score supporting signals (green score)
6. Drop picks priced heavier than the odds ceiling
7. Rank by probability and keep the top N
8. Attach a safer alternate line where one exists
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional, Sequence

from loguru import logger

from nba_props.config.constants import (
    CALIBRATION_TEMPERATURE,
    EDGE_ODDS_CEILING,
    EDGE_TOP_N,
    PROBABILITY_CAP,
    SAFER_LINE_ODDS_THRESHOLD,
    Side,
    StatType,
)
from nba_props.data.models import AltLine, DefenseRank, HitRateSummary, Prop, SharedData
from nba_props.data.sources.odds_api import find_best_goblin_line
from nba_props.features.base import FeatureSet, FeatureValidationError
from nba_props.features.hit_rates import get_hit_rates, l10_average
from nba_props.features.prop_features import GameContext, PropFeatureBuilder

from .calibration import calibrate_prediction, load_temperature
from .signals import calculate_green_score, passes_sanity_check, trend_for_stat


@dataclass(frozen=True)
class SaferLine:
    """An alternate line on the same side, priced as a safer parlay leg."""

    line: float
    odds: int
    bookmaker: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"line": self.line, "odds": self.odds, "bookmaker": self.bookmaker}


@dataclass(frozen=True)
class EdgeResult:
    """
    One ranked value prop.

    ``probability`` is the calibrated and capped probability of ``side``;
    raw model output is kept only for diagnostics.
    """

    player_name: str
    stat_type: StatType
    line: float
    side: Side
    probability: float
    calibrated_probability: float
    raw_probability_over: float
    raw_probability_under: float
    odds_over: Optional[int]
    odds_under: Optional[int]
    bookmaker_over: Optional[str]
    bookmaker_under: Optional[str]
    hit_rates: HitRateSummary
    green_score: int
    green_signals: tuple[str, ...]
    l10_avg: Optional[float] = None
    trend: float = 0.0
    opponent_defense: Optional[DefenseRank] = None
    player_id: Optional[int] = None
    team: Optional[str] = None
    opponent: Optional[str] = None
    is_home: bool = False
    games_used: int = 0
    safer_line: Optional[SaferLine] = None

    @property
    def relevant_odds(self) -> Optional[int]:
        return self.odds_over if self.side is Side.OVER else self.odds_under

    @property
    def bookmaker(self) -> Optional[str]:
        return self.bookmaker_over if self.side is Side.OVER else self.bookmaker_under

    @property
    def pick_description(self) -> str:
        """Human-readable pick, e.g. "Jalen Brunson Over 27.5 PTS"."""
        return f"{self.player_name} {self.side.value} {self.line} {self.stat_type.label}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_name": self.player_name,
            "player_id": self.player_id,
            "team": self.team,
            "opponent": self.opponent,
            "is_home": self.is_home,
            "stat_type": self.stat_type.value,
            "line": self.line,
            "prediction": self.side.value,
            "probability": round(self.probability, 4),
            "calibrated_probability": round(self.calibrated_probability, 4),
            "raw_probability_over": self.raw_probability_over,
            "raw_probability_under": self.raw_probability_under,
            "odds_over": self.odds_over,
            "odds_under": self.odds_under,
            "bookmaker_over": self.bookmaker_over,
            "bookmaker_under": self.bookmaker_under,
            "l10_avg": self.l10_avg,
            "trend": self.trend,
            "hit_rates": self.hit_rates.to_dict(),
            "opponent_defense": self.opponent_defense.to_dict() if self.opponent_defense else None,
            "green_score": self.green_score,
            "green_signals": list(self.green_signals),
            "games_used": self.games_used,
            "safer_line": self.safer_line.to_dict() if self.safer_line else None,
        }


@dataclass
class EdgeBoardResult:
    """Ranked results for one game plus pass/fail counts."""

    event_id: str
    results: list[EdgeResult] = field(default_factory=list)
    total_props: int = 0
    enriched: int = 0
    predicted: int = 0
    failed_inference: int = 0
    sanity_rejected: int = 0
    odds_ceiling_rejected: int = 0
    computed_at: datetime = field(default_factory=datetime.now)

    @property
    def diagnostics(self) -> dict[str, int]:
        return {
            "total_props": self.total_props,
            "enriched": self.enriched,
            "predicted": self.predicted,
            "failed_inference": self.failed_inference,
            "sanity_rejected": self.sanity_rejected,
            "odds_ceiling_rejected": self.odds_ceiling_rejected,
            "returned": len(self.results),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "results": [r.to_dict() for r in self.results],
            "diagnostics": self.diagnostics,
            "computed_at": self.computed_at.isoformat(),
        }


def select_safer_line(
    lines: Sequence[AltLine],
    side: Side,
    player_avg: Optional[float],
    threshold: int = SAFER_LINE_ODDS_THRESHOLD,
) -> Optional[SaferLine]:
    """
    The alternate line closest to the player's average on the pick's side.

    Lines priced at or beyond ``threshold`` are preferred; when none are,
    the most heavily priced on-side line is used.
    """
    if player_avg is None:
        return None

    on_side = [
        alt for alt in lines
        if alt.odds_for(side) is not None
        and (alt.line < player_avg if side is Side.OVER else alt.line > player_avg)
    ]
    if not on_side:
        return None

    best = find_best_goblin_line(on_side, side, player_avg, threshold)
    if best is None:
        best = min(on_side, key=lambda alt: alt.odds_for(side))
    return SaferLine(line=best.line, odds=best.odds_for(side), bookmaker=best.bookmaker_for(side))


class EdgeBoardEngine:
    """
    Ranks standard props by calibrated model probability.

    Example:
        >>> engine = EdgeBoardEngine(inference_client)
        >>> board = await engine.run(shared_data)
        >>> board.results[0].probability
        0.81
    """

    def __init__(
        self,
        inference_client,
        feature_builder: Optional[PropFeatureBuilder] = None,
        temperature: float = CALIBRATION_TEMPERATURE,
        probability_cap: float = PROBABILITY_CAP,
        odds_ceiling: int = EDGE_ODDS_CEILING,
        top_n: int = EDGE_TOP_N,
        safer_line_threshold: int = SAFER_LINE_ODDS_THRESHOLD,
    ):
        self.inference = inference_client
        self.feature_builder = feature_builder or PropFeatureBuilder()
        self.temperature = temperature
        self.probability_cap = probability_cap
        self.odds_ceiling = odds_ceiling
        self.top_n = top_n
        self.safer_line_threshold = safer_line_threshold
        self.logger = logger.bind(component="edge_board")

    @classmethod
    def from_settings(cls, settings, inference_client) -> "EdgeBoardEngine":
        edge = settings.edge_board
        temperature = edge.temperature
        if edge.calibrator_path:
            temperature = load_temperature(edge.calibrator_path, default=temperature)
        return cls(
            inference_client,
            temperature=temperature,
            probability_cap=edge.probability_cap,
            odds_ceiling=edge.odds_ceiling,
            top_n=edge.top_n,
            safer_line_threshold=edge.safer_line_threshold,
        )

    def _context(self, shared: SharedData, team: Optional[str]) -> GameContext:
        return GameContext(
            home_team=shared.home_team or "",
            away_team=shared.away_team or "",
            is_home=shared.is_home(team),
            game_time=shared.game_time,
        )

    def build_feature_sets(self, shared: SharedData) -> list[tuple[Prop, FeatureSet]]:
        """Feature vectors for every prop whose player has at least one game log."""
        built = []
        for prop in shared.standard_props:
            logs = shared.logs_for(prop.player_name)
            if not logs:
                continue
            try:
                features = self.feature_builder.build_features(
                    logs, prop, self._context(shared, logs[0].team)
                )
            except FeatureValidationError as e:
                self.logger.warning(f"Skipping {prop.player_name} {prop.stat_type.value}: {e}")
                continue
            built.append((prop, features))
        return built

    async def run(self, shared: SharedData) -> EdgeBoardResult:
        """Score one game's standard props."""
        board = EdgeBoardResult(event_id=shared.event_id, total_props=len(shared.standard_props))

        built = self.build_feature_sets(shared)
        board.enriched = len(built)
        if not built:
            self.logger.info(f"Event {shared.event_id}: no props with game logs")
            return board

        predictions = await self.inference.predict([features.to_instance() for _, features in built])

        candidates: list[EdgeResult] = []
        for (prop, features), prediction in zip(built, predictions):
            if prediction is None:
                board.failed_inference += 1
                continue
            board.predicted += 1

            result = self._evaluate(shared, prop, features, prediction)
            if result is None:
                board.sanity_rejected += 1
                continue

            odds = result.relevant_odds
            if odds is not None and odds < self.odds_ceiling:
                board.odds_ceiling_rejected += 1
                self.logger.debug(f"Odds ceiling: {result.pick_description} at {odds}")
                continue
            candidates.append(result)

        candidates.sort(key=lambda r: r.probability, reverse=True)
        board.results = [self._attach_safer_line(shared, r) for r in candidates[: self.top_n]]

        self.logger.info(
            f"Event {shared.event_id}: {len(board.results)} edge results "
            f"({board.enriched} enriched, {board.failed_inference} failed inference, "
            f"{board.sanity_rejected} sanity, {board.odds_ceiling_rejected} odds ceiling)"
        )
        return board

    def _evaluate(
        self, shared: SharedData, prop: Prop, features: FeatureSet, prediction
    ) -> Optional[EdgeResult]:
        logs = shared.logs_for(prop.player_name)
        team = logs[0].team if logs else None
        opponent = shared.opponent_of(team)
        defense = shared.defense_for(opponent)

        calibrated = calibrate_prediction(prediction, self.temperature, self.probability_cap)
        side = calibrated.side
        hit_rates = get_hit_rates(logs, prop.stat_type, prop.line)
        avg = l10_average(logs, prop.stat_type)

        sanity = passes_sanity_check(side, avg, prop.line, hit_rates, defense)
        if not sanity.passed:
            self.logger.debug(
                f"Sanity: {prop.player_name} {side.value} {prop.line} "
                f"{prop.stat_type.label} rejected ({sanity.reason})"
            )
            return None

        green = calculate_green_score(
            side, avg, prop.line, hit_rates, defense, prop.odds_for(side)
        )

        return EdgeResult(
            player_name=prop.player_name,
            stat_type=prop.stat_type,
            line=prop.line,
            side=side,
            probability=calibrated.probability,
            calibrated_probability=calibrated.calibrated_probability,
            raw_probability_over=prediction.raw_probability_over,
            raw_probability_under=prediction.raw_probability_under,
            odds_over=prop.odds_over,
            odds_under=prop.odds_under,
            bookmaker_over=prop.bookmaker_over,
            bookmaker_under=prop.bookmaker_under,
            hit_rates=hit_rates,
            green_score=green.score,
            green_signals=green.signals,
            l10_avg=avg,
            trend=round(trend_for_stat(features, prop.stat_type), 1),
            opponent_defense=defense,
            player_id=shared.player_id_map.get(prop.player_name),
            team=team,
            opponent=opponent,
            is_home=shared.is_home(team),
            games_used=len(logs),
        )

    def _attach_safer_line(self, shared: SharedData, result: EdgeResult) -> EdgeResult:
        for alt in shared.alt_props:
            if alt.player_name == result.player_name and alt.stat_type is result.stat_type:
                safer = select_safer_line(
                    alt.lines, result.side, result.l10_avg, self.safer_line_threshold
                )
                if safer is not None:
                    return replace(result, safer_line=safer)
                break
        return result
