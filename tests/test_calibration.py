"""Tests for temperature calibration and American odds math."""
from decimal import Decimal

import numpy as np
import pytest

from nba_props.betting.calibration import (
    TemperatureCalibrator,
    calibrate,
    calibrate_prediction,
    evaluate_calibration,
    fit_temperature,
)
from nba_props.betting.odds_converter import (
    american_to_decimal,
    american_to_implied_probability,
    combined_american_odds,
    format_american_odds,
    implied_probability,
    implied_probability_to_american,
)
from nba_props.config.constants import Side
from nba_props.data.models import Prediction


class TestCalibrate:
    """Temperature scaling of a single probability."""

    def test_known_value(self):
        assert calibrate(0.9, 2.0) == pytest.approx(0.75)

    def test_half_is_fixed_point(self):
        assert calibrate(0.5) == pytest.approx(0.5)

    def test_pulls_toward_half_and_keeps_order(self):
        raw = [0.05, 0.3, 0.55, 0.7, 0.95]
        scaled = [calibrate(p) for p in raw]

        assert scaled == sorted(scaled)
        assert all(abs(s - 0.5) < abs(r - 0.5) for r, s in zip(raw, scaled))

    def test_extremes_are_clamped(self):
        assert 0.5 < calibrate(1.0) < 1.0
        assert 0.0 < calibrate(0.0) < 0.5

    def test_rejects_non_positive_temperature(self):
        with pytest.raises(ValueError):
            calibrate(0.7, 0.0)


class TestCalibratePrediction:
    """Side resolution and the probability cap."""

    def test_over_side_uses_over_probability(self):
        result = calibrate_prediction(Prediction(Side.OVER, 0.9, 0.1))

        assert result.side is Side.OVER
        assert result.probability == pytest.approx(0.75)
        assert result.raw_probability == 0.9

    def test_under_side_uses_under_probability(self):
        result = calibrate_prediction(Prediction(Side.UNDER, 0.2, 0.8))

        assert result.side is Side.UNDER
        assert result.probability == pytest.approx(calibrate(0.8))

    def test_cap_applies_after_calibration(self):
        result = calibrate_prediction(Prediction(Side.OVER, 0.999, 0.001))

        assert result.calibrated_probability > 0.85
        assert result.probability == 0.85


class TestTemperatureFit:
    """Fitting T on graded picks."""

    def test_overconfident_model_gets_temperature_above_one(self):
        rng = np.random.default_rng(7)
        true_probs = rng.uniform(0.55, 0.75, size=2000)
        outcomes = (rng.uniform(size=2000) < true_probs).astype(int)
        # Push the stated probabilities further from 0.5 than reality
        logits = np.log(true_probs / (1 - true_probs)) * 2.5
        stated = 1 / (1 + np.exp(-logits))

        assert fit_temperature(stated, outcomes) > 1.5

    def test_save_and_load(self, tmp_path):
        calibrator = TemperatureCalibrator(temperature=1.7)
        path = tmp_path / "models" / "calibrator.joblib"

        calibrator.save(path)
        loaded = TemperatureCalibrator.load(path)

        assert loaded.temperature == 1.7
        assert loaded.calibrate(0.9) == pytest.approx(calibrator.calibrate(0.9))

    def test_metrics(self):
        metrics = evaluate_calibration([0.8, 0.8, 0.2, 0.2], [1, 1, 0, 0])

        assert metrics.n_samples == 4
        assert metrics.brier_score == pytest.approx(0.04)
        assert metrics.ece == pytest.approx(0.2)
        assert not metrics.is_well_calibrated

    def test_mismatched_lengths(self):
        with pytest.raises(ValueError):
            fit_temperature([0.6, 0.7], [1])


class TestOddsMath:
    """American odds conversions and parlay pricing."""

    def test_implied_probability(self):
        assert american_to_implied_probability(-150) == Decimal("0.6")
        assert american_to_implied_probability(150) == Decimal("0.4")
        assert implied_probability(-420) == pytest.approx(0.8077, abs=1e-4)

    def test_missing_odds_default_to_minus_110(self):
        assert implied_probability(None) == pytest.approx(110 / 210)

    def test_decimal_odds(self):
        assert american_to_decimal(-200) == Decimal("1.5")
        assert american_to_decimal(150) == Decimal("2.5")

    def test_probability_to_american(self):
        assert implied_probability_to_american(Decimal("0.6")) == -150
        assert implied_probability_to_american(Decimal("0.4")) == 150
        with pytest.raises(ValueError):
            implied_probability_to_american(Decimal("1"))

    def test_combined_odds(self):
        assert combined_american_odds([-300, -300]) == -129
        assert combined_american_odds([-450] * 5) == 173

    def test_combined_odds_needs_a_leg(self):
        with pytest.raises(ValueError):
            combined_american_odds([])

    def test_format(self):
        assert format_american_odds(173) == "+173"
        assert format_american_odds(-129) == "-129"
