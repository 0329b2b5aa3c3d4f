"""
Scoring and pricing utilities.

Provides tools for:
- American odds conversion and combined parlay pricing
- Temperature calibration of model probabilities
- Green score and sanity filter signals

The engines live in ``nba_props.betting.edge_board``,
``nba_props.betting.parlay_stack`` and ``nba_props.betting.slip_builder``
and are imported from there directly, since they depend on the feature
builders which in turn use the odds helpers exported here.
"""

from .odds_converter import (
    american_to_decimal,
    american_to_implied_probability,
    implied_probability,
    implied_probability_to_american,
    combined_american_odds,
    format_american_odds,
)

from .calibration import (
    CalibratedPrediction,
    CalibrationMetrics,
    TemperatureCalibrator,
    calibrate,
    calibrate_prediction,
    cap_probability,
    evaluate_calibration,
    fit_temperature,
)

from .signals import (
    GreenScore,
    SanityResult,
    calculate_green_score,
    passes_sanity_check,
    trend_for_stat,
)

__all__ = [
    # Odds converter
    "american_to_decimal",
    "american_to_implied_probability",
    "implied_probability",
    "implied_probability_to_american",
    "combined_american_odds",
    "format_american_odds",
    # Calibration
    "CalibratedPrediction",
    "CalibrationMetrics",
    "TemperatureCalibrator",
    "calibrate",
    "calibrate_prediction",
    "cap_probability",
    "evaluate_calibration",
    "fit_temperature",
    # Signals
    "GreenScore",
    "SanityResult",
    "calculate_green_score",
    "passes_sanity_check",
    "trend_for_stat",
]
