"""
Range Tests.

Domain validation, ordering and the tri-state calculated flag.
"""

import math

import pytest

from risktree.constants import MAX_FREQUENCY
from risktree.engine.enums import Confidence, RangeState, RangeType
from risktree.engine.range import Range
from risktree.engine.statistics import SampleSummary
from risktree.exceptions import DomainValidationError, ErrorCode


class TestRangeValidation:
    """Test domain checks for each range type."""

    def test_money_rejects_negative(self):
        r = Range(RangeType.MONEY)
        with pytest.raises(DomainValidationError) as exc:
            r.set(-1, 0, 10)
        assert exc.value.error_code == ErrorCode.VALIDATION_ERROR
        assert exc.value.field == "min"

    def test_frequency_upper_bound(self):
        r = Range(RangeType.FREQUENCY)
        r.set(0, 1, MAX_FREQUENCY)
        with pytest.raises(DomainValidationError):
            r.set(0, 1, MAX_FREQUENCY + 1)

    def test_percentage_bounds(self):
        r = Range(RangeType.PERCENTAGE)
        r.set(0, 0.5, 1)
        with pytest.raises(DomainValidationError):
            r.set(0, 0.5, 1.5)

    @pytest.mark.parametrize("value", [math.nan, math.inf, "5", None, True])
    def test_non_numbers_rejected(self, value):
        with pytest.raises(DomainValidationError):
            Range(RangeType.MONEY).set(0, value, 10)

    def test_mode_ordering_enforced(self):
        with pytest.raises(DomainValidationError):
            Range(RangeType.MONEY).set(10, 5, 20)

    def test_domain_error_is_value_error(self):
        with pytest.raises(ValueError):
            Range(RangeType.PERCENTAGE).set(0, 0, 2)

    def test_failed_set_keeps_previous_values(self):
        r = Range(RangeType.MONEY, 1, 2, 3)
        with pytest.raises(DomainValidationError):
            r.set(5, 1, 0)
        assert r.as_tuple() == (1, 2, 3, Confidence.MODERATE)


class TestCalculatedState:
    """None = never populated, False = user, True = engine."""

    def setup_method(self):
        self.range = Range(RangeType.MONEY)

    def test_new_range_is_unset(self):
        assert self.range.calculated is None
        assert self.range.state == RangeState.UNSET
        assert not self.range.is_defined

    def test_set_marks_user_supplied(self):
        self.range.set(1, 2, 3, Confidence.HIGH)
        assert self.range.calculated is False
        assert self.range.confidence == Confidence.HIGH

    def test_computed_then_edited(self):
        self.range.set_computed(SampleSummary(1, 2, 3, Confidence.LOW, 100))
        assert self.range.calculated is True
        self.range.max = 10
        assert self.range.calculated is False
        assert self.range.max == 10

    def test_confidence_setter_flips_state(self):
        self.range.set_computed(SampleSummary(1, 2, 3, Confidence.LOW, 100))
        self.range.confidence = Confidence.HIGH
        assert self.range.calculated is False

    def test_computed_values_clamped_to_domain(self):
        r = Range(RangeType.PERCENTAGE)
        r.set_computed(SampleSummary(-0.1, 0.5, 1.2, Confidence.MODERATE, 100))
        assert (r.min, r.mode, r.max) == (0.0, 0.5, 1.0)

    def test_reset(self):
        self.range.set(1, 2, 3)
        self.range.reset()
        assert self.range.calculated is None
        assert self.range.generate_samples(10_000) is None

    def test_restore_preserves_state(self):
        self.range.restore(1, 2, 3, Confidence.LOW, RangeState.COMPUTED)
        assert self.range.calculated is True
        assert self.range.as_tuple() == (1, 2, 3, Confidence.LOW)

    def test_calculated_round_trip(self):
        for calculated in (None, False, True):
            assert RangeState.from_calculated(calculated).calculated is calculated


class TestRangeValue:
    def test_copy_is_independent(self):
        original = Range(RangeType.MONEY, 1, 2, 3)
        clone = original.copy()
        assert clone == original
        clone.max = 4
        assert original.max == 3
        assert clone != original

    def test_constructor_requires_all_points(self):
        with pytest.raises(DomainValidationError):
            Range(RangeType.MONEY, min=1, max=3)

    def test_samples_follow_estimate(self, rng):
        r = Range(RangeType.FREQUENCY, 1, 12, 120)
        samples = r.generate_samples(10_000, rng=rng)
        assert len(samples) == 10_000
        assert 1 <= samples.min() <= samples.max() <= 120

    def test_confidence_labels(self):
        assert Confidence.MODERATE.label == "Moderate"
        assert Confidence.from_label("high") == Confidence.HIGH
        assert min(Confidence.HIGH, Confidence.LOW) == Confidence.LOW
        with pytest.raises(ValueError):
            Confidence.from_label("certain")


class TestFromSamples:
    def test_summarizes_into_computed_range(self, rng):
        samples = rng.uniform(0, 100, 10_000)
        r = Range.from_samples(RangeType.MONEY, samples, 10, 90)
        assert r.calculated is True
        assert r.min == pytest.approx(10, abs=1.5)
        assert r.max == pytest.approx(90, abs=1.5)
        assert r.confidence == Confidence.LOW

    def test_empty(self):
        assert Range.from_samples(RangeType.MONEY, None, 10, 90) is None
