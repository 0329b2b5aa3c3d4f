"""
Player prop feature builder.

Maps (game-log history, prop, game context) to the 88-field vector the
remote model was trained on:

- Categorical (5): prop_type, home_team, away_team, bookmaker, SEASON
- Temporal (3): year, month, day_of_week
- Last 3 games (12) and last 10 games (15, incl. PTS/REB/AST stdev)
- Game context (5): home/away, rest, back-to-back, recent load
- Advanced (12), interactions (6), composites (8), ratios (2)
- Betting line (20): prices, implied probabilities, line-vs-history deltas

Percentages are fractions in [0, 1]. Every division is guarded, so the
vector is finite even for an empty history or a zero line.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from nba_props.betting.odds_converter import implied_probability
from nba_props.config.constants import DEFAULT_ODDS
from nba_props.data.models import GameLogEntry, Prop
from nba_props.data.sources.player_stats import current_season

from .base import BaseFeatureBuilder, FeatureSet

DEFAULT_DAYS_REST = 2
DEFAULT_GAMES_IN_LAST_7 = 3
DEFAULT_BOOKMAKER = "DraftKings"
EFFICIENCY_STABLE_TOLERANCE = 0.05


CATEGORICAL_FEATURES = ["prop_type", "home_team", "away_team", "bookmaker", "SEASON"]
TEMPORAL_FEATURES = ["year", "month", "day_of_week"]
WINDOW_STATS = [
    "PTS", "REB", "AST", "MIN", "FG_PCT", "FG3M", "FG3_PCT",
    "STL", "BLK", "TOV", "FGM", "FGA",
]
L3_FEATURES = [f"L3_{name}" for name in WINDOW_STATS]
L10_FEATURES = [f"L10_{name}" for name in WINDOW_STATS] + [
    "L10_PTS_STD", "L10_REB_STD", "L10_AST_STD",
]
CONTEXT_FEATURES = ["HOME_AWAY", "DAYS_REST", "BACK_TO_BACK", "GAMES_IN_LAST_7", "MINUTES_TREND"]
ADVANCED_FEATURES = [
    "SCORING_EFFICIENCY", "ASSIST_TO_RATIO", "REBOUND_RATE", "USAGE_RATE",
    "TREND_PTS", "TREND_REB", "TREND_AST",
    "CONSISTENCY_PTS", "CONSISTENCY_REB", "CONSISTENCY_AST",
    "ACCELERATION_PTS", "EFFICIENCY_STABLE",
]
INTERACTION_FEATURES = [
    "L3_PTS_x_HOME", "L3_REB_x_HOME", "L3_AST_x_HOME",
    "L3_MIN_x_B2B", "L3_PTS_x_REST", "USAGE_x_EFFICIENCY",
]
COMPOSITE_FEATURES = [
    "LOAD_INTENSITY", "SHOOTING_VOLUME", "REBOUND_INTENSITY", "PLAYMAKING_EFFICIENCY",
    "THREE_POINT_THREAT", "DEFENSIVE_IMPACT", "PTS_VOLATILITY", "MINUTES_STABILITY",
]
RATIO_FEATURES = ["L3_vs_L10_PTS_RATIO", "L3_vs_L10_REB_RATIO"]
BETTING_FEATURES = [
    "line", "odds_over", "odds_under", "implied_prob_over", "implied_prob_under",
    "LINE_VALUE", "ODDS_EDGE", "odds_spread", "market_confidence",
    "L3_PTS_vs_LINE", "L3_REB_vs_LINE", "L3_AST_vs_LINE",
    "LINE_DIFFICULTY_PTS", "LINE_DIFFICULTY_REB", "LINE_DIFFICULTY_AST",
    "IMPLIED_PROB_OVER", "LINE_vs_AVG_PTS", "LINE_vs_AVG_REB",
    "L3_vs_market", "L10_vs_market",
]

FEATURE_NAMES: list[str] = (
    CATEGORICAL_FEATURES
    + TEMPORAL_FEATURES
    + L3_FEATURES
    + L10_FEATURES
    + CONTEXT_FEATURES
    + ADVANCED_FEATURES
    + INTERACTION_FEATURES
    + COMPOSITE_FEATURES
    + RATIO_FEATURES
    + BETTING_FEATURES
)


@dataclass(frozen=True)
class GameContext:
    """What the builder needs to know about the upcoming game."""

    home_team: str = ""
    away_team: str = ""
    is_home: bool = False
    game_time: Optional[datetime] = None


def season_label(season: int) -> str:
    """Season category value, e.g. 2025 -> "2025-26"."""
    return f"{season}-{(season + 1) % 100:02d}"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days between two instants, rounded up."""
    seconds = abs((_as_utc(later) - _as_utc(earlier)).total_seconds())
    return math.ceil(seconds / 86400)


class PropFeatureBuilder(BaseFeatureBuilder):
    """
    Builds the model's feature vector for one player prop.

    Example:
        >>> builder = PropFeatureBuilder()
        >>> features = builder.build_features(logs, prop, GameContext("Boston Celtics", "New York Knicks"))
        >>> len(features)
        88
    """

    def get_feature_names(self) -> list[str]:
        return list(FEATURE_NAMES)

    def build_features(
        self,
        game_logs: Sequence[GameLogEntry],
        prop: Prop,
        context: Optional[GameContext] = None,
    ) -> FeatureSet:
        context = context or GameContext()
        game_time = context.game_time or datetime.now(timezone.utc)

        l3 = self._window_stats(game_logs, 3)
        l10 = self._window_stats(game_logs, 10)
        l10["L10_PTS_STD"] = self._calculate_rolling_std([g.points for g in game_logs], 10)
        l10["L10_REB_STD"] = self._calculate_rolling_std([g.rebounds for g in game_logs], 10)
        l10["L10_AST_STD"] = self._calculate_rolling_std([g.assists for g in game_logs], 10)

        ctx = self._context_features(game_logs, game_time, context.is_home, l3, l10)
        advanced = self._advanced_features(l3, l10, ctx)
        interactions = self._interaction_features(l3, ctx, advanced)
        composites = self._composite_features(l3, l10, ctx, advanced)
        ratios = {
            "L3_vs_L10_PTS_RATIO": self._safe_divide(l3["L3_PTS"], l10["L10_PTS"], 1.0),
            "L3_vs_L10_REB_RATIO": self._safe_divide(l3["L3_REB"], l10["L10_REB"], 1.0),
        }
        betting = self._betting_features(prop, l3, l10)

        features: dict[str, Any] = {
            "prop_type": prop.stat_type.prop_type,
            "home_team": context.home_team or "",
            "away_team": context.away_team or "",
            "bookmaker": prop.bookmaker_over or prop.bookmaker_under or DEFAULT_BOOKMAKER,
            "SEASON": season_label(current_season(game_time.date())),
            "year": float(game_time.year),
            "month": float(game_time.month),
            # Sunday = 0
            "day_of_week": float((game_time.weekday() + 1) % 7),
        }
        for group in (l3, l10, ctx, advanced, interactions, composites, ratios, betting):
            features.update({name: self._handle_missing(value) for name, value in group.items()})

        ordered = {name: features[name] for name in FEATURE_NAMES}
        return self.validate(
            FeatureSet(
                features=ordered,
                player_name=prop.player_name,
                stat_type=prop.stat_type.value,
            )
        )

    def _window_stats(self, game_logs: Sequence[GameLogEntry], window: int) -> dict[str, float]:
        label = self._window_label(window)
        games = list(game_logs[:window])
        count = len(games)

        def avg(attr: str) -> float:
            return self._safe_divide(sum(getattr(g, attr) for g in games), count)

        fgm = sum(g.fgm for g in games)
        fga = sum(g.fga for g in games)
        fg3m = sum(g.threes_made for g in games)
        fg3a = sum(g.threes_attempted for g in games)

        return {
            f"{label}_PTS": avg("points"),
            f"{label}_REB": avg("rebounds"),
            f"{label}_AST": avg("assists"),
            f"{label}_MIN": avg("minutes_played"),
            f"{label}_FG_PCT": self._safe_divide(fgm, fga),
            f"{label}_FG3M": avg("threes_made"),
            f"{label}_FG3_PCT": self._safe_divide(fg3m, fg3a),
            f"{label}_STL": avg("steals"),
            f"{label}_BLK": avg("blocks"),
            f"{label}_TOV": avg("turnovers"),
            f"{label}_FGM": avg("fgm"),
            f"{label}_FGA": avg("fga"),
        }

    def _context_features(
        self,
        game_logs: Sequence[GameLogEntry],
        game_time: datetime,
        is_home: bool,
        l3: dict[str, float],
        l10: dict[str, float],
    ) -> dict[str, float]:
        dated = [g.game_date for g in game_logs if g.game_date is not None]

        if game_logs and game_logs[0].game_date is not None:
            days_rest = days_between(game_logs[0].game_date, game_time)
        else:
            days_rest = DEFAULT_DAYS_REST

        if dated:
            games_in_last_7 = sum(1 for d in dated if days_between(d, game_time) <= 7)
        else:
            games_in_last_7 = DEFAULT_GAMES_IN_LAST_7

        return {
            "HOME_AWAY": 1.0 if is_home else 0.0,
            "DAYS_REST": float(days_rest),
            "BACK_TO_BACK": 1.0 if days_rest == 1 else 0.0,
            "GAMES_IN_LAST_7": float(games_in_last_7),
            "MINUTES_TREND": l3["L3_MIN"] - l10["L10_MIN"],
        }

    def _advanced_features(
        self, l3: dict[str, float], l10: dict[str, float], ctx: dict[str, float]
    ) -> dict[str, float]:
        trend_pts = l3["L3_PTS"] - l10["L10_PTS"]
        return {
            "SCORING_EFFICIENCY": self._safe_divide(l3["L3_PTS"], l3["L3_FGA"]),
            "ASSIST_TO_RATIO": self._safe_divide(l3["L3_AST"], l3["L3_TOV"], l3["L3_AST"]),
            "REBOUND_RATE": self._safe_divide(l3["L3_REB"], l3["L3_MIN"]),
            "USAGE_RATE": self._safe_divide(l3["L3_FGA"], l3["L3_MIN"]),
            "TREND_PTS": trend_pts,
            "TREND_REB": l3["L3_REB"] - l10["L10_REB"],
            "TREND_AST": l3["L3_AST"] - l10["L10_AST"],
            "CONSISTENCY_PTS": self._safe_divide(l10["L10_PTS_STD"], l10["L10_PTS"]),
            "CONSISTENCY_REB": self._safe_divide(l10["L10_REB_STD"], l10["L10_REB"]),
            "CONSISTENCY_AST": self._safe_divide(l10["L10_AST_STD"], l10["L10_AST"]),
            "ACCELERATION_PTS": self._safe_divide(trend_pts, ctx["DAYS_REST"], trend_pts),
            "EFFICIENCY_STABLE": (
                1.0 if abs(l3["L3_FG_PCT"] - l10["L10_FG_PCT"]) < EFFICIENCY_STABLE_TOLERANCE else 0.0
            ),
        }

    @staticmethod
    def _interaction_features(
        l3: dict[str, float], ctx: dict[str, float], advanced: dict[str, float]
    ) -> dict[str, float]:
        return {
            "L3_PTS_x_HOME": l3["L3_PTS"] * ctx["HOME_AWAY"],
            "L3_REB_x_HOME": l3["L3_REB"] * ctx["HOME_AWAY"],
            "L3_AST_x_HOME": l3["L3_AST"] * ctx["HOME_AWAY"],
            "L3_MIN_x_B2B": l3["L3_MIN"] * ctx["BACK_TO_BACK"],
            "L3_PTS_x_REST": l3["L3_PTS"] * ctx["DAYS_REST"],
            "USAGE_x_EFFICIENCY": advanced["USAGE_RATE"] * advanced["SCORING_EFFICIENCY"],
        }

    def _composite_features(
        self,
        l3: dict[str, float],
        l10: dict[str, float],
        ctx: dict[str, float],
        advanced: dict[str, float],
    ) -> dict[str, float]:
        return {
            "LOAD_INTENSITY": ctx["GAMES_IN_LAST_7"] * (l10["L10_MIN"] / 7),
            "SHOOTING_VOLUME": l3["L3_FGA"],
            "REBOUND_INTENSITY": l3["L3_REB"] * advanced["REBOUND_RATE"],
            "PLAYMAKING_EFFICIENCY": l3["L3_AST"] * advanced["ASSIST_TO_RATIO"],
            "THREE_POINT_THREAT": l3["L3_FG3M"] * l3["L3_FG3_PCT"],
            "DEFENSIVE_IMPACT": l3["L3_STL"] + l3["L3_BLK"] + 0.5,
            "PTS_VOLATILITY": self._safe_divide(l10["L10_PTS_STD"], l10["L10_PTS"]),
            "MINUTES_STABILITY": self._safe_divide(l3["L3_MIN"], l10["L10_MIN"], 1.0),
        }

    def _betting_features(
        self, prop: Prop, l3: dict[str, float], l10: dict[str, float]
    ) -> dict[str, float]:
        line = float(prop.line)
        odds_over = prop.odds_over if prop.odds_over is not None else DEFAULT_ODDS
        odds_under = prop.odds_under if prop.odds_under is not None else DEFAULT_ODDS
        prob_over = implied_probability(odds_over)
        prob_under = implied_probability(odds_under)

        return {
            "line": line,
            "odds_over": float(odds_over),
            "odds_under": float(odds_under),
            "implied_prob_over": prob_over,
            "implied_prob_under": prob_under,
            "LINE_VALUE": self._safe_divide(l3["L3_PTS"] - line, line),
            "ODDS_EDGE": prob_over - prob_under,
            "odds_spread": float(odds_over - odds_under),
            "market_confidence": abs(prob_over - 0.5),
            "L3_PTS_vs_LINE": l3["L3_PTS"] - line,
            "L3_REB_vs_LINE": l3["L3_REB"] - line,
            "L3_AST_vs_LINE": l3["L3_AST"] - line,
            "LINE_DIFFICULTY_PTS": self._line_ratio(line, l10["L10_PTS"]),
            "LINE_DIFFICULTY_REB": self._line_ratio(line, l10["L10_REB"]),
            "LINE_DIFFICULTY_AST": self._line_ratio(line, l10["L10_AST"]),
            "IMPLIED_PROB_OVER": prob_over,
            "LINE_vs_AVG_PTS": line - l10["L10_PTS"],
            "LINE_vs_AVG_REB": line - l10["L10_REB"],
            "L3_vs_market": (l3["L3_PTS"] - line) * prob_over,
            "L10_vs_market": (l10["L10_PTS"] - line) * prob_over,
        }

    def _line_ratio(self, line: float, average: float) -> float:
        """Line over average, neutral (1.0) for a zero line or zero average."""
        if line == 0:
            return 1.0
        return self._safe_divide(line, average, 1.0)
