"""
Abstract base classes for feature engineering.

Provides the immutable feature container handed to inference, a common
builder interface, and the guarded window helpers every builder uses.
"""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

import numpy as np
from loguru import logger


class FeatureValidationError(ValueError):
    """A built feature set is missing fields or holds non-finite numbers."""


@dataclass(frozen=True)
class FeatureSet:
    """
    Immutable container for one (player, prop) feature vector.

    ``features`` preserves the builder's field order, which is the order
    the inference endpoint expects in each instance.
    """

    features: Mapping[str, Any]
    computed_at: datetime = field(default_factory=datetime.now)
    player_name: Optional[str] = None
    stat_type: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", MappingProxyType(dict(self.features)))

    def __len__(self) -> int:
        return len(self.features)

    def __getitem__(self, key: str) -> Any:
        return self.features[key]

    def get(self, key: str, default: float = 0.0) -> Any:
        """Get a feature value with default."""
        return self.features.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Convert features to a plain (mutable) dictionary."""
        return dict(self.features)

    def to_instance(self) -> dict[str, Any]:
        """One element of the inference request's ``instances`` array."""
        return {
            key: (float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else value)
            for key, value in self.features.items()
        }


class BaseFeatureBuilder(ABC):
    """
    Abstract base class for feature builders.

    Builders are pure: no I/O, no shared state, identical output for
    identical input. Game logs are always passed most recent first.
    """

    DEFAULT_WINDOWS = [3, 10]
    WINDOW_LABELS = {3: "L3", 5: "L5", 10: "L10", 20: "L20"}

    def __init__(self):
        self.logger = logger.bind(builder=self.__class__.__name__)

    @abstractmethod
    def get_feature_names(self) -> list[str]:
        """
        Get list of feature names this builder produces.

        Returns:
            List of feature names, in output order
        """
        pass

    @abstractmethod
    def build_features(self, *args, **kwargs) -> FeatureSet:
        """
        Build features for the given inputs.

        Returns:
            FeatureSet with computed features
        """
        pass

    def validate(self, features: FeatureSet) -> FeatureSet:
        """Check the field set is exactly the declared one and numbers are finite."""
        expected = self.get_feature_names()
        if list(features.features) != expected:
            missing = set(expected) - set(features.features)
            extra = set(features.features) - set(expected)
            raise FeatureValidationError(
                f"Feature set mismatch: missing={sorted(missing)} extra={sorted(extra)}"
            )
        bad = [
            name for name, value in features.features.items()
            if isinstance(value, float) and not math.isfinite(value)
        ]
        if bad:
            raise FeatureValidationError(f"Non-finite features: {bad}")
        return features

    def _window_label(self, window: int) -> str:
        """Get label for a rolling window size."""
        return self.WINDOW_LABELS.get(window, f"L{window}")

    @staticmethod
    def _safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
        """Divide, returning ``default`` when the denominator is zero."""
        if not denominator:
            return default
        return numerator / denominator

    def _handle_missing(
        self,
        value: Optional[float],
        default: float = 0.0,
    ) -> float:
        """Handle missing values with default."""
        if value is None or (isinstance(value, float) and not math.isfinite(value)):
            return default
        return float(value)

    def _calculate_rolling_std(
        self,
        values: Sequence[float],
        window: int,
    ) -> float:
        """Sample standard deviation (n - 1) of the most recent values; 0 below two."""
        recent = list(values[:window])
        if len(recent) < 2:
            return 0.0
        return float(np.std(np.asarray(recent, dtype=float), ddof=1))
