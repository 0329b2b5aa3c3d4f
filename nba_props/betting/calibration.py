"""
Probability calibration for the remote prop model.

The model is known to be overconfident, so raw probabilities are softened
by temperature scaling (``sigmoid(logit(p) / T)``) and then capped. Nothing
downstream ever sees an uncalibrated probability.

Offline tooling in this module fits T on graded picks and reports
calibration quality (ECE, MCE, Brier score, log loss).
"""
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import joblib
import numpy as np
from loguru import logger
from scipy.optimize import minimize_scalar
from sklearn.metrics import brier_score_loss, log_loss

from nba_props.config.constants import (
    CALIBRATION_TEMPERATURE,
    PROBABILITY_CAP,
    PROBABILITY_CLAMP,
    Side,
)
from nba_props.data.models import Prediction


def calibrate(probability: float, temperature: float = CALIBRATION_TEMPERATURE) -> float:
    """
    Temperature-scale one probability.

    The input is clamped to [0.001, 0.999] first so the logit is finite.
    T > 1 pulls probabilities toward 0.5 while keeping their order.

    Examples:
        >>> round(calibrate(0.9), 4)
        0.75
        >>> calibrate(0.5)
        0.5
    """
    if temperature <= 0:
        raise ValueError("temperature must be positive")
    low, high = PROBABILITY_CLAMP
    p = min(max(float(probability), low), high)
    logit = math.log(p / (1 - p))
    return 1 / (1 + math.exp(-logit / temperature))


def cap_probability(probability: float, cap: float = PROBABILITY_CAP) -> float:
    return min(probability, cap)


@dataclass(frozen=True)
class CalibratedPrediction:
    """A prediction's side and its calibrated, capped probability."""

    side: Side
    probability: float
    raw_probability: float
    calibrated_probability: float


def calibrate_prediction(
    prediction: Prediction,
    temperature: float = CALIBRATION_TEMPERATURE,
    cap: float = PROBABILITY_CAP,
) -> CalibratedPrediction:
    """
    Resolve the predicted side and its display probability.

    The side is the model's explicit side (falling back to the larger raw
    probability when the parser inferred it). The probability shown is
    that side's raw value, calibrated, then capped.
    """
    side = prediction.side
    raw = (
        prediction.raw_probability_over
        if side is Side.OVER
        else prediction.raw_probability_under
    )
    calibrated = calibrate(raw, temperature)
    return CalibratedPrediction(
        side=side,
        probability=cap_probability(calibrated, cap),
        raw_probability=raw,
        calibrated_probability=calibrated,
    )


@dataclass
class CalibrationMetrics:
    """Metrics for evaluating calibration quality."""

    # Expected Calibration Error (lower is better)
    ece: float

    # Maximum Calibration Error
    mce: float

    # Brier Score (lower is better)
    brier_score: float

    log_loss: float
    n_samples: int

    def to_dict(self) -> dict[str, float]:
        return {
            "ece": self.ece,
            "mce": self.mce,
            "brier_score": self.brier_score,
            "log_loss": self.log_loss,
            "n_samples": self.n_samples,
        }

    @property
    def is_well_calibrated(self) -> bool:
        """Check if ECE is below threshold (0.05)."""
        return self.ece < 0.05


def _calculate_ece_mce(probs: np.ndarray, actuals: np.ndarray, n_bins: int) -> tuple[float, float]:
    bin_edges = np.linspace(0, 1, n_bins + 1)
    bin_indices = np.digitize(probs, bin_edges[1:-1])

    ece = 0.0
    mce = 0.0
    total = len(probs)

    for i in range(n_bins):
        mask = bin_indices == i
        n_bin = np.sum(mask)
        if n_bin > 0:
            error = abs(float(np.mean(probs[mask])) - float(np.mean(actuals[mask])))
            ece += (n_bin / total) * error
            mce = max(mce, error)

    return float(ece), float(mce)


def evaluate_calibration(
    predicted_probs,
    actual_outcomes,
    n_bins: int = 10,
) -> CalibrationMetrics:
    """
    Evaluate calibration quality of probabilities against graded outcomes.

    Args:
        predicted_probs: Probabilities to evaluate
        actual_outcomes: Binary outcomes (1 = the predicted side hit)
        n_bins: Number of bins for ECE calculation
    """
    probs = np.asarray(predicted_probs, dtype=float).flatten()
    actuals = np.asarray(actual_outcomes, dtype=float).flatten()
    if len(probs) != len(actuals):
        raise ValueError("Predictions and outcomes must have same length")
    if len(probs) == 0:
        raise ValueError("No samples to evaluate")

    ece, mce = _calculate_ece_mce(probs, actuals, n_bins)
    clipped = np.clip(probs, 1e-7, 1 - 1e-7)

    return CalibrationMetrics(
        ece=ece,
        mce=mce,
        brier_score=float(brier_score_loss(actuals, probs)),
        log_loss=float(log_loss(actuals, clipped, labels=[0, 1])),
        n_samples=len(probs),
    )


class TemperatureCalibrator:
    """
    Fits and applies a single temperature T.

    Example:
        >>> calibrator = TemperatureCalibrator().fit(raw_probs, outcomes)
        >>> calibrator.temperature
        1.87
        >>> calibrator.calibrate(0.9)
    """

    BOUNDS = (0.25, 10.0)

    def __init__(self, temperature: float = CALIBRATION_TEMPERATURE, cap: float = PROBABILITY_CAP):
        self.temperature = temperature
        self.cap = cap
        self.is_fitted = False
        self.last_metrics: Optional[CalibrationMetrics] = None
        self.logger = logger.bind(component="calibrator")

    def __getstate__(self):
        """Exclude logger from pickling."""
        state = self.__dict__.copy()
        del state["logger"]
        return state

    def __setstate__(self, state):
        """Restore logger after unpickling."""
        self.__dict__.update(state)
        self.logger = logger.bind(component="calibrator")

    def fit(self, predicted_probs, actual_outcomes) -> "TemperatureCalibrator":
        """
        Choose T minimising log loss on graded picks.

        Args:
            predicted_probs: Raw model probabilities for the picked side
            actual_outcomes: Binary outcomes (0 or 1)

        Returns:
            Self for method chaining
        """
        self.temperature = fit_temperature(predicted_probs, actual_outcomes, self.BOUNDS)
        self.is_fitted = True
        self.last_metrics = self.evaluate(predicted_probs, actual_outcomes)
        self.logger.info(
            f"Fitted temperature {self.temperature:.3f} on {self.last_metrics.n_samples} samples "
            f"(ECE {self.last_metrics.ece:.3f})"
        )
        return self

    def calibrate(self, probability: float) -> float:
        """Calibrated and capped probability."""
        return cap_probability(calibrate(probability, self.temperature), self.cap)

    def evaluate(self, predicted_probs, actual_outcomes, n_bins: int = 10) -> CalibrationMetrics:
        """Metrics of this calibrator's (uncapped) output on graded picks."""
        scaled = [calibrate(p, self.temperature) for p in np.asarray(predicted_probs).flatten()]
        return evaluate_calibration(scaled, actual_outcomes, n_bins)

    def save(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)
        self.logger.info(f"Saved calibrator to {path}")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "TemperatureCalibrator":
        return joblib.load(Path(path))


def load_temperature(path: Union[str, Path], default: float = CALIBRATION_TEMPERATURE) -> float:
    """Temperature of a saved calibrator, or ``default`` when there is no file."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"No calibrator at {path}; using T={default}")
        return default
    calibrator = TemperatureCalibrator.load(path)
    logger.info(f"Loaded calibrator T={calibrator.temperature:.3f} from {path}")
    return calibrator.temperature


def fit_temperature(
    predicted_probs,
    actual_outcomes,
    bounds: tuple[float, float] = TemperatureCalibrator.BOUNDS,
) -> float:
    """
    Temperature minimising log loss of ``sigmoid(logit(p) / T)``.

    Uses bounded scalar minimisation; T above 1 means the model was
    overconfident on this sample.
    """
    probs = np.asarray(predicted_probs, dtype=float).flatten()
    actuals = np.asarray(actual_outcomes, dtype=float).flatten()
    if len(probs) != len(actuals):
        raise ValueError("Predictions and outcomes must have same length")
    if len(probs) == 0:
        raise ValueError("No samples to fit")

    low, high = PROBABILITY_CLAMP
    logits = np.log(np.clip(probs, low, high) / (1 - np.clip(probs, low, high)))

    def loss(temperature: float) -> float:
        scaled = 1 / (1 + np.exp(-logits / temperature))
        scaled = np.clip(scaled, 1e-7, 1 - 1e-7)
        return float(-np.mean(actuals * np.log(scaled) + (1 - actuals) * np.log(1 - scaled)))

    result = minimize_scalar(loss, bounds=bounds, method="bounded")
    return float(result.x)
