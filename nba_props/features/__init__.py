"""
Feature engineering for NBA player prop predictions.

This module provides:
- The immutable FeatureSet container sent to the inference endpoint
- The 88-field PropFeatureBuilder
- Hit-rate, average and trend helpers shared by both scoring engines

Example:
    >>> from nba_props.features import PropFeatureBuilder, GameContext
    >>> features = PropFeatureBuilder().build_features(logs, prop, GameContext(is_home=True))
    >>> features.to_instance()["L10_PTS"]
    28.5
"""

from .base import BaseFeatureBuilder, FeatureSet, FeatureValidationError
from .hit_rates import (
    calculate_hit_rate,
    directional_fraction,
    directional_pct,
    get_hit_rates,
    l10_average,
    stat_values,
    trend,
    window_average,
)
from .prop_features import FEATURE_NAMES, GameContext, PropFeatureBuilder

__all__ = [
    # Base classes
    "BaseFeatureBuilder",
    "FeatureSet",
    "FeatureValidationError",
    # Prop features
    "FEATURE_NAMES",
    "GameContext",
    "PropFeatureBuilder",
    # Hit rates
    "calculate_hit_rate",
    "directional_fraction",
    "directional_pct",
    "get_hit_rates",
    "l10_average",
    "stat_values",
    "trend",
    "window_average",
]
