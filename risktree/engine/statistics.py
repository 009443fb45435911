"""
Sample statistics for three-point estimates.

Pure functions, no model state:
- fit_pert: scaled-Beta parameters from (min, mode, max, confidence)
- generate_samples: draw a fixed-length sample array
- percentile / calculate_mode / calculate_confidence: summary statistics
- summarize: collapse a sample array back into a three-point estimate

Higher confidence means a larger PERT lambda, i.e. a distribution more
peaked around the mode.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog
from scipy import stats

from risktree.constants import (
    KURTOSIS_LOW_THRESHOLD,
    KURTOSIS_MODERATE_THRESHOLD,
    MAX_ITERATIONS,
    MIN_ITERATIONS,
    MODE_BIN_THRESHOLD,
    PERT_LAMBDA_HIGH,
    PERT_LAMBDA_LOW,
    PERT_LAMBDA_MODERATE,
)
from risktree.engine.enums import Confidence
from risktree.exceptions import DomainValidationError

logger = structlog.get_logger(__name__)

_PERT_LAMBDA: dict[Confidence, float] = {
    Confidence.LOW: PERT_LAMBDA_LOW,
    Confidence.MODERATE: PERT_LAMBDA_MODERATE,
    Confidence.HIGH: PERT_LAMBDA_HIGH,
}


@dataclass(frozen=True)
class PertParameters:
    """Scaled Beta(alpha, beta) on [low, high]."""
    alpha: float
    beta: float
    low: float
    high: float
    mean: float      # PERT mean used to derive alpha/beta
    lam: float       # shape weight of the mode

    @property
    def span(self) -> float:
        return self.high - self.low


@dataclass(frozen=True)
class SampleSummary:
    """Three-point estimate recovered from a sample array."""
    low: float              # value at the low percentile
    mode: float             # center of the most populated histogram bin
    high: float             # value at the high percentile
    confidence: Confidence
    n_samples: int


def pert_lambda(confidence: Confidence) -> float:
    return _PERT_LAMBDA[Confidence(confidence)]


def validate_iterations(iterations: int) -> int:
    """Reject iteration counts outside [MIN_ITERATIONS, MAX_ITERATIONS]."""
    if isinstance(iterations, bool) or not isinstance(iterations, (int, np.integer)):
        raise DomainValidationError(
            "Iterations must be an integer", field="iterations", value=iterations,
        )
    if not MIN_ITERATIONS <= iterations <= MAX_ITERATIONS:
        raise DomainValidationError(
            f"Iterations must be between {MIN_ITERATIONS} and {MAX_ITERATIONS}",
            field="iterations",
            value=iterations,
        )
    return int(iterations)


def validate_percentiles(min_percentile: float, max_percentile: float) -> None:
    for name, value in (("min_percentile", min_percentile), ("max_percentile", max_percentile)):
        if not (0.0 <= value <= 100.0):
            raise DomainValidationError(
                f"{name} must be between 0 and 100", field=name, value=value,
            )
    if min_percentile > max_percentile:
        raise DomainValidationError(
            "min_percentile must not exceed max_percentile",
            field="min_percentile",
            value=min_percentile,
        )


def fit_pert(
    low: float,
    mode: float,
    high: float,
    confidence: Confidence,
) -> Optional[PertParameters]:
    """
    Fit the PERT-style Beta for a three-point estimate.

    mean = (low + λ·mode + high) / (λ + 2)
    α = ((mean − low)(2·mode − low − high)) / ((mode − mean)(high − low))
    β = α (high − mean) / (mean − low)

    Returns None when the estimate is degenerate (low == high) or the
    resulting shape parameters are not finite and positive.
    """
    span = high - low
    if not span > 0:
        return None

    lam = pert_lambda(confidence)
    mean = (low + lam * mode + high) / (lam + 2)
    # mode - mean == (2·mode - low - high) / (λ + 2), so both ratios reduce
    # to closed forms with no singularity at mode == mean
    alpha = 1 + lam * (mode - low) / span
    beta = 1 + lam * (high - mode) / span

    if not (math.isfinite(alpha) and math.isfinite(beta) and alpha > 0 and beta > 0):
        logger.debug(
            "pert_fit_rejected",
            low=low, mode=mode, high=high, alpha=alpha, beta=beta,
        )
        return None

    return PertParameters(alpha=alpha, beta=beta, low=low, high=high, mean=mean, lam=lam)


def generate_samples(
    low: float,
    mode: float,
    high: float,
    confidence: Confidence,
    iterations: int,
    rng: Optional[np.random.Generator] = None,
) -> Optional[np.ndarray]:
    """
    Draw ``iterations`` samples from the fitted distribution.

    A point estimate (low == high) yields a constant array. Samples are
    clipped into [low, high] so floating-point noise never leaves the domain.
    """
    if low == high:
        return np.full(iterations, float(low), dtype=np.float64)

    params = fit_pert(low, mode, high, confidence)
    if params is None:
        return None

    rng = rng if rng is not None else np.random.default_rng()
    samples = params.low + rng.beta(params.alpha, params.beta, size=iterations) * params.span
    return np.clip(samples, low, high)


def percentile(samples: np.ndarray, pct: float) -> float:
    """Percentile with median-unbiased interpolation (Hyndman & Fan type 8)."""
    return float(np.percentile(samples, pct, method="median_unbiased"))


def calculate_mode(samples: np.ndarray) -> float:
    """Center of the most populated histogram bin."""
    n = len(samples)
    lowest = float(np.min(samples))
    highest = float(np.max(samples))
    if lowest == highest:
        return lowest

    bins = n // 100 if n < MODE_BIN_THRESHOLD else n // 1000
    counts, edges = np.histogram(samples, bins=max(1, bins))
    top = int(np.argmax(counts))
    return float((edges[top] + edges[top + 1]) / 2)


def calculate_confidence(samples: np.ndarray) -> Confidence:
    """Map excess kurtosis onto the confidence scale."""
    kurtosis = stats.kurtosis(samples, fisher=True, bias=False)
    if not np.isfinite(kurtosis):
        # constant samples: no spread at all
        return Confidence.HIGH
    if kurtosis < KURTOSIS_LOW_THRESHOLD:
        return Confidence.LOW
    if kurtosis < KURTOSIS_MODERATE_THRESHOLD:
        return Confidence.MODERATE
    return Confidence.HIGH


def summarize(
    samples: Optional[np.ndarray],
    min_percentile: float,
    max_percentile: float,
    confidence: Optional[Confidence] = None,
) -> Optional[SampleSummary]:
    """
    Collapse samples into (low, mode, high, confidence).

    The mode is clamped into [low, high] so the summary is always ordered.
    Confidence is inferred from kurtosis only when not supplied.
    """
    if samples is None or len(samples) == 0:
        return None

    low = percentile(samples, min_percentile)
    high = max(percentile(samples, max_percentile), low)
    mode = min(max(calculate_mode(samples), low), high)
    if confidence is None:
        confidence = calculate_confidence(samples)

    return SampleSummary(
        low=low,
        mode=mode,
        high=high,
        confidence=Confidence(confidence),
        n_samples=len(samples),
    )
