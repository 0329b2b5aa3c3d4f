"""
Tests for hit rates and the 88-field feature vector.

Covers:
- Strict-over hit counting and window sizes
- L10 average and trend rounding
- Feature field order, completeness and finiteness on thin data
"""
import math
from datetime import datetime, timezone

import pytest
from conftest import GAME_TIME, HOME, L10_POINTS, make_logs

from nba_props.config.constants import Side, StatType
from nba_props.data.models import HitRate, Prop
from nba_props.features import (
    FEATURE_NAMES,
    FeatureSet,
    FeatureValidationError,
    GameContext,
    PropFeatureBuilder,
    calculate_hit_rate,
    directional_pct,
    get_hit_rates,
    l10_average,
    trend,
)
from nba_props.features.prop_features import days_between, season_label


class TestHitRates:
    """Hit counting against a line."""

    def test_push_is_not_a_hit(self):
        rate = calculate_hit_rate([25, 24.5, 24, 30], 24.5)

        assert (rate.hits, rate.total, rate.pct) == (2, 4, 50)

    def test_empty_window_is_zero(self):
        assert calculate_hit_rate([], 10.5) == HitRate(hits=0, total=0, pct=0)

    def test_windows(self, season_logs):
        rates = get_hit_rates(season_logs, StatType.POINTS, 24.5)

        assert rates.l10.total == 10
        assert rates.l10.pct == 90
        assert rates.l5.total == 5
        assert rates.l20.total == 20
        assert rates.season.total == 25
        assert rates.season.pct == 84

    def test_under_direction_is_complement(self):
        rate = HitRate(hits=3, total=10, pct=30)

        assert directional_pct(rate, Side.OVER) == 30
        assert directional_pct(rate, Side.UNDER) == 70

    def test_composite_stat_sums_components(self):
        logs = make_logs([20, 22], rebounds=8, assists=6)

        rates = get_hit_rates(logs, StatType.POINTS_REBOUNDS_ASSISTS, 34.5)

        assert rates.l10.hits == 1


class TestAveragesAndTrend:
    """L10 average and L3-minus-L10 trend."""

    def test_l10_average(self, season_logs):
        assert l10_average(season_logs, StatType.POINTS) == 28.5

    def test_l10_average_without_logs(self):
        assert l10_average([], StatType.POINTS) is None

    def test_trend(self, season_logs):
        # L3 (30 + 28 + 25) / 3 = 27.67, L10 28.5
        assert trend(season_logs, StatType.POINTS) == -0.8

    def test_trend_without_logs(self):
        assert trend([], StatType.POINTS) == 0.0


class TestPropFeatureBuilder:
    """The model's feature vector."""

    @pytest.fixture
    def builder(self):
        return PropFeatureBuilder()

    @pytest.fixture
    def context(self):
        return GameContext(home_team=HOME, away_team="New York Knicks", is_home=True, game_time=GAME_TIME)

    def test_exactly_88_fields_in_order(self, builder, season_logs, points_prop, context):
        features = builder.build_features(season_logs, points_prop, context)

        assert len(FEATURE_NAMES) == 88
        assert list(features.features) == FEATURE_NAMES

    def test_values_from_logs(self, builder, season_logs, points_prop, context):
        features = builder.build_features(season_logs, points_prop, context)

        assert features["L10_PTS"] == pytest.approx(sum(L10_POINTS) / 10)
        assert features["L3_PTS"] == pytest.approx(83 / 3)
        assert features["HOME_AWAY"] == 1.0
        assert features["line"] == 27.5
        assert features["odds_over"] == -115.0
        assert features["prop_type"] == "points"
        assert features["bookmaker"] == "DraftKings"
        assert features["SEASON"] == "2024-25"
        assert features["DAYS_REST"] == 2.0

    def test_no_logs_are_finite(self, builder, points_prop):
        features = builder.build_features([], points_prop, GameContext())

        assert len(features) == 88
        numeric = [v for v in features.features.values() if isinstance(v, float)]
        assert all(math.isfinite(v) for v in numeric)

    def test_zero_line_is_finite(self, builder, season_logs, context):
        prop = Prop(player_name="Jayson Tatum", stat_type=StatType.BLOCKS, line=0.0)

        features = builder.build_features(season_logs, prop, context)

        assert features["LINE_VALUE"] == 0.0
        assert features["LINE_DIFFICULTY_PTS"] == 1.0
        assert features["odds_over"] == -110.0

    def test_single_game_std_is_finite(self, builder, points_prop, context):
        features = builder.build_features(make_logs([30]), points_prop, context)

        assert features["L10_PTS_STD"] == 0.0

    def test_threes_prop_type_category(self, builder, season_logs, context):
        prop = Prop(player_name="Jayson Tatum", stat_type=StatType.THREES_MADE, line=2.5)

        features = builder.build_features(season_logs, prop, context)

        assert features["prop_type"] == "threePointersMade"

    def test_to_instance_keeps_order(self, builder, season_logs, points_prop, context):
        instance = builder.build_features(season_logs, points_prop, context).to_instance()

        assert list(instance) == FEATURE_NAMES
        assert isinstance(instance["line"], float)

    def test_validate_rejects_non_finite(self, builder):
        values = {name: 0.0 for name in FEATURE_NAMES}
        values["L10_PTS"] = float("nan")

        with pytest.raises(FeatureValidationError):
            builder.validate(FeatureSet(features=values))

    def test_validate_rejects_missing_fields(self, builder):
        with pytest.raises(FeatureValidationError):
            builder.validate(FeatureSet(features={"line": 1.0}))

    def test_feature_set_is_read_only(self, builder, season_logs, points_prop, context):
        features = builder.build_features(season_logs, points_prop, context)

        with pytest.raises(TypeError):
            features.features["line"] = 99.0


class TestCalendarHelpers:
    def test_season_label(self):
        assert season_label(2025) == "2025-26"
        assert season_label(2099) == "2099-00"

    def test_days_between_rounds_up(self):
        earlier = datetime(2025, 1, 1, 19, 0, tzinfo=timezone.utc)
        later = datetime(2025, 1, 3, 0, 30, tzinfo=timezone.utc)

        assert days_between(earlier, later) == 2
