"""
Three-point estimate with a calculated state.

A Range holds (min, mode, max, confidence) inside the domain of its
RangeType, plus who populated it. Any direct edit marks it user-supplied;
the engine writes through :meth:`Range.set_computed` only.
"""

import math
from typing import Optional

import numpy as np

from risktree.engine import statistics
from risktree.engine.enums import Confidence, RangeState, RangeType
from risktree.engine.statistics import SampleSummary
from risktree.exceptions import DomainValidationError


class Range:
    """Bounded unimodal estimate: min <= mode <= max, all within the range type."""

    __slots__ = ("_range_type", "_min", "_mode", "_max", "_confidence", "_state")

    def __init__(
        self,
        range_type: RangeType,
        min: Optional[float] = None,
        mode: Optional[float] = None,
        max: Optional[float] = None,
        confidence: Confidence = Confidence.MODERATE,
    ):
        self._range_type = RangeType(range_type)
        self._min = 0.0
        self._mode = 0.0
        self._max = 0.0
        self._confidence = Confidence(confidence)
        self._state = RangeState.UNSET
        if min is not None or mode is not None or max is not None:
            if min is None or mode is None or max is None:
                raise DomainValidationError("min, mode and max must be given together")
            self.set(min, mode, max, confidence)

    # ── Accessors ────────────────────────────────────────────────────────

    @property
    def range_type(self) -> RangeType:
        return self._range_type

    @property
    def min(self) -> float:
        return self._min

    @min.setter
    def min(self, value: float) -> None:
        self.set(value, self._mode, self._max, self._confidence)

    @property
    def mode(self) -> float:
        return self._mode

    @mode.setter
    def mode(self, value: float) -> None:
        self.set(self._min, value, self._max, self._confidence)

    @property
    def max(self) -> float:
        return self._max

    @max.setter
    def max(self, value: float) -> None:
        self.set(self._min, self._mode, value, self._confidence)

    @property
    def confidence(self) -> Confidence:
        return self._confidence

    @confidence.setter
    def confidence(self, value: Confidence) -> None:
        self.set(self._min, self._mode, self._max, value)

    @property
    def state(self) -> RangeState:
        return self._state

    @property
    def calculated(self) -> Optional[bool]:
        """None = never populated, False = user-supplied, True = engine-computed."""
        return self._state.calculated

    @property
    def is_defined(self) -> bool:
        return self._state is not RangeState.UNSET

    # ── Mutation ─────────────────────────────────────────────────────────

    def set(
        self,
        min: float,
        mode: float,
        max: float,
        confidence: Confidence = Confidence.MODERATE,
    ) -> None:
        """Validate and store a user-supplied estimate."""
        low = self._check("min", min)
        peak = self._check("mode", mode)
        high = self._check("max", max)
        if not low <= peak <= high:
            raise DomainValidationError(
                f"Expected min <= mode <= max, got {low}, {peak}, {high}",
                field="mode",
                value=peak,
            )
        self._min, self._mode, self._max = low, peak, high
        self._confidence = self._check_confidence(confidence)
        self._state = RangeState.USER_SUPPLIED

    def set_computed(self, summary: SampleSummary) -> None:
        """Store an engine result; values are clamped into the domain."""
        bottom, top = self._range_type.bounds
        low = min(max(summary.low, bottom), top)
        high = min(max(summary.high, low), top)
        self._min = low
        self._max = high
        self._mode = min(max(summary.mode, low), high)
        self._confidence = Confidence(summary.confidence)
        self._state = RangeState.COMPUTED

    def restore(
        self,
        min: float,
        mode: float,
        max: float,
        confidence: Confidence,
        state: RangeState,
    ) -> None:
        """Reinstate a persisted or snapshotted range including its state."""
        state = RangeState(state)
        if state is RangeState.UNSET:
            self.reset()
            self._confidence = self._check_confidence(confidence)
            return
        self.set(min, mode, max, confidence)
        self._state = state

    def reset(self) -> None:
        self._min = self._mode = self._max = 0.0
        self._confidence = Confidence.MODERATE
        self._state = RangeState.UNSET

    # ── Sampling ─────────────────────────────────────────────────────────

    def generate_samples(
        self,
        iterations: int,
        rng: Optional[np.random.Generator] = None,
    ) -> Optional[np.ndarray]:
        """Sample the estimate; None if never populated or not fittable."""
        if not self.is_defined:
            return None
        return statistics.generate_samples(
            self._min, self._mode, self._max, self._confidence, iterations, rng=rng,
        )

    @classmethod
    def from_samples(
        cls,
        range_type: RangeType,
        samples: Optional[np.ndarray],
        min_percentile: float,
        max_percentile: float,
        confidence: Optional[Confidence] = None,
    ) -> Optional["Range"]:
        """Summarize samples into a computed range; None for empty input."""
        summary = statistics.summarize(samples, min_percentile, max_percentile, confidence)
        if summary is None:
            return None
        result = cls(range_type)
        result.set_computed(summary)
        return result

    # ── Value semantics ──────────────────────────────────────────────────

    def copy(self) -> "Range":
        clone = Range(self._range_type)
        clone._min, clone._mode, clone._max = self._min, self._mode, self._max
        clone._confidence = self._confidence
        clone._state = self._state
        return clone

    def as_tuple(self) -> tuple[float, float, float, Confidence]:
        return self._min, self._mode, self._max, self._confidence

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Range):
            return NotImplemented
        return (
            self._range_type == other._range_type
            and self.as_tuple() == other.as_tuple()
            and self._state == other._state
        )

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return (
            f"Range({self._range_type.value}, min={self._min}, mode={self._mode}, "
            f"max={self._max}, confidence={self._confidence.label}, state={self._state.value})"
        )

    # ── Validation ───────────────────────────────────────────────────────

    def _check(self, name: str, value: float) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
            raise DomainValidationError(f"{name} must be a number", field=name, value=value)
        value = float(value)
        if not math.isfinite(value) or not self._range_type.contains(value):
            low, high = self._range_type.bounds
            raise DomainValidationError(
                f"{name}={value} is outside the {self._range_type.value} domain [{low}, {high}]",
                field=name,
                value=value,
            )
        return value

    @staticmethod
    def _check_confidence(confidence: Confidence) -> Confidence:
        try:
            return Confidence(confidence)
        except ValueError:
            raise DomainValidationError(
                "Unknown confidence", field="confidence", value=confidence,
            ) from None
