"""
Mitigation Optimizer Tests.

Scenario (risk = 2000, all point estimates):
    A: cost 100, effect 0.5   → first year 1100 (best)
    B: cost 900, effect 0.4   → 2100
    C: cost  50, effect 0.0   → 2050
"""

import itertools
import threading
import uuid

import pytest

from risktree.engine.enums import NodeKind, OptimizationParameter
from risktree.exceptions import ErrorCode, OptimizationCancelledError, OptimizationError
from risktree.model import MitigationOptimizer, RiskModel, SimulationResult

from conftest import ITERATIONS, add_point_mitigation, add_point_risk


def first_year_mode(model: RiskModel, subset) -> float:
    model.set_enabled_state(subset)
    return model.simulate_with_mitigations(ITERATIONS).first_year.mode


class TestOptimizer:
    """Test the power-set search."""

    def setup_method(self):
        self.model = RiskModel("optimizer")
        self.risk = add_point_risk(self.model, 2, 1000)
        self.a = add_point_mitigation(self.model, "A", cost=100, effect=0.5)
        self.b = add_point_mitigation(self.model, "B", cost=900, effect=0.4)
        self.c = add_point_mitigation(self.model, "C", cost=50, effect=0.0)

    def test_finds_cheapest_subset(self):
        result = self.model.optimize_mitigations(iterations=ITERATIONS)
        assert result.mitigations == (self.a,)
        assert result.first_year.mode == pytest.approx(1100)
        assert result.residual_risk.mode == pytest.approx(1000)
        assert result.statistic == pytest.approx(1100)

    def test_matches_brute_force(self):
        """No other non-empty subset is cheaper than the reported one."""
        result = self.model.optimize_mitigations(iterations=ITERATIONS)
        candidates = [self.a, self.b, self.c]
        state = self.model.enabled_state()
        for size in range(1, 4):
            for subset in itertools.combinations(candidates, size):
                assert first_year_mode(self.model, subset) >= result.first_year.mode - 1e-6
        self.model.restore_enabled_state(state)

    def test_evaluates_every_subset(self):
        result = self.model.optimize_mitigations(iterations=ITERATIONS)
        assert result.evaluated_subsets == 2 ** 3 - 1
        assert result.failed_subsets == 0

    def test_restores_enabled_flags(self):
        self.b.enabled = False
        self.model.optimize_mitigations(iterations=ITERATIONS)
        assert (self.a.enabled, self.b.enabled, self.c.enabled) == (True, False, True)

    def test_winner_ranges_written_back(self):
        self.model.optimize_mitigations(iterations=ITERATIONS)
        assert self.risk.mode == pytest.approx(1000)

    def test_following_years(self):
        """A recurring cost on A makes B + C cheaper after the first year."""
        self.a.set_operation_costs(5_000, 5_000, 5_000)
        result = self.model.optimize_mitigations(
            optimize_for_following_years=True, iterations=ITERATIONS,
        )
        # B alone: 1200 residual; everything else including A pays 5000 yearly
        assert result.mitigations == (self.b,)
        assert result.following_years.mode == pytest.approx(1200)
        assert result.target is result.following_years

    def test_parameter_max(self):
        result = self.model.optimize_mitigations(
            parameter=OptimizationParameter.MAX, iterations=ITERATIONS,
        )
        assert result.parameter == OptimizationParameter.MAX
        assert result.mitigations == (self.a,)

    def test_ties_prefer_smaller_then_earlier_subsets(self):
        model = RiskModel()
        add_point_risk(model, 2, 1000)
        first = add_point_mitigation(model, "free-1", cost=0, effect=0.0)
        add_point_mitigation(model, "free-2", cost=0, effect=0.0)
        result = model.optimize_mitigations(iterations=ITERATIONS)
        assert result.mitigations == (first,)

    def test_selected_subset(self):
        result = self.model.optimize_mitigations(
            selected_mitigations=[self.b.id, self.c, uuid.uuid4()],
            iterations=ITERATIONS,
        )
        assert result.evaluated_subsets == 3
        assert result.mitigations == (self.c,)
        # A was not a candidate, so it stayed disabled during the search
        assert result.residual_risk.mode == pytest.approx(2000)

    def test_no_candidates(self):
        assert RiskModel().optimize_mitigations(iterations=ITERATIONS) is None
        assert self.model.optimize_mitigations(selected_mitigations=[], iterations=ITERATIONS) is None

    def test_candidate_limit(self):
        optimizer = MitigationOptimizer(self.model, max_candidates=2)
        with pytest.raises(OptimizationError) as exc:
            optimizer.optimize(iterations=ITERATIONS)
        assert exc.value.error_code == ErrorCode.TOO_MANY_CANDIDATES

    def test_failed_subsets_skipped(self):
        self.model.add_mitigation("unpriced")
        result = self.model.optimize_mitigations(iterations=ITERATIONS)
        assert result.evaluated_subsets == 15
        assert result.failed_subsets == 8
        assert result.mitigations == (self.a,)

    def test_no_feasible_subset(self):
        model = RiskModel()
        risk = model.add_risk("incomplete")
        risk.add_child(NodeKind.LOSS_EVENT_FREQUENCY)
        add_point_mitigation(model, "A", cost=1, effect=0.1)
        assert model.optimize_mitigations(iterations=ITERATIONS) is None

    def test_cancellation_restores_state(self):
        cancel = threading.Event()
        cancel.set()
        self.c.enabled = False
        before = self.model.capture_ranges()
        with pytest.raises(OptimizationCancelledError) as exc:
            self.model.optimize_mitigations(iterations=ITERATIONS, cancel_event=cancel)
        assert exc.value.evaluated_subsets == 0
        assert (self.a.enabled, self.b.enabled, self.c.enabled) == (True, True, False)
        assert self.model.capture_ranges() == before

    def test_snapshots_cover_model(self):
        result = self.model.optimize_mitigations(iterations=ITERATIONS)
        assert set(result.snapshots) == {node.id for node in self.model.nodes()}
        assert result.mitigation_ids == [self.a.id]


class TestSimulationResult:
    """Test result comparison and snapshot application."""

    def setup_method(self):
        self.model = RiskModel()
        self.risk = add_point_risk(self.model, 2, 1000)
        self.mitigation = add_point_mitigation(self.model, "A", cost=100, effect=0.5)

    def _result(self, enabled: bool) -> SimulationResult:
        self.mitigation.enabled = enabled
        result = SimulationResult()
        result.costs = self.model.simulate_costs(ITERATIONS, container=result)
        result.store_results(self.model)
        return result

    def test_is_better_than(self):
        with_a = self._result(True)     # 1000 + 100
        without = self._result(False)   # 2000
        assert with_a.is_better_than(without)
        assert not without.is_better_than(with_a)
        assert not with_a.is_better_than(with_a)
        assert with_a.is_better_than(None)
        assert not SimulationResult().is_better_than(without)

    def test_apply_restores_snapshot(self):
        with_a = self._result(True)
        self._result(False)
        assert self.risk.mode == pytest.approx(2000)
        with_a.apply(self.model)
        assert self.risk.mode == pytest.approx(1000)
        assert with_a.samples_for(self.risk.id) is not None
