"""
Risk Model Aggregate Tests.

Point estimates make every expected value exact:
risk = 2 × 1000 = 2000, mitigation effect 0.5, cost 300, operation 50.
"""

import uuid

import pytest

from risktree.engine.enums import Confidence, NodeKind
from risktree.exceptions import DomainValidationError, ErrorCode, StructuralError
from risktree.facts import Fact, FactHardNumber
from risktree.model import RiskModel, SimulationResult

from conftest import ITERATIONS, add_point_mitigation, add_point_risk, point


class TestBaselineSimulation:
    """Test simulate(): every mitigation disabled."""

    def setup_method(self):
        self.model = RiskModel("baseline")
        self.risk = add_point_risk(self.model, 2, 1000)
        self.mitigation = add_point_mitigation(self.model, "MFA", cost=300, effect=0.5)

    def test_ignores_mitigations(self):
        result = self.model.simulate(ITERATIONS)
        assert result.mode == pytest.approx(2000)
        assert result.min == pytest.approx(2000)
        assert result.calculated is True

    def test_restores_enabled_flags(self):
        other = add_point_mitigation(self.model, "EDR", cost=10, effect=0.1)
        other.enabled = False
        self.model.simulate(ITERATIONS)
        assert self.mitigation.enabled is True
        assert other.enabled is False

    def test_restores_flags_when_observer_raises(self):
        class Exploding:
            def on_risk_simulated(self, model, risk, result):
                raise RuntimeError("boom")

        strict = RiskModel("strict", propagate_observer_errors=True)
        add_point_risk(strict, 2, 1000)
        mitigation = add_point_mitigation(strict, "MFA", cost=300, effect=0.5)
        strict.subscribe(Exploding())
        with pytest.raises(RuntimeError):
            strict.simulate(ITERATIONS)
        assert mitigation.enabled is True

    def test_sums_enabled_risks(self):
        add_point_risk(self.model, 1, 500, name="second")
        assert self.model.simulate(ITERATIONS).mode == pytest.approx(2500)

    def test_disabled_risk_skipped(self):
        second = add_point_risk(self.model, 1, 500, name="second")
        second.enabled = False
        assert self.model.simulate(ITERATIONS).mode == pytest.approx(2000)

    def test_any_failing_risk_fails_model(self):
        broken = self.model.add_risk("broken")
        point(broken.add_child(NodeKind.LOSS_EVENT_FREQUENCY), 1)
        assert self.model.simulate(ITERATIONS) is None
        assert self.mitigation.enabled is True

    def test_no_risks_is_zero(self):
        empty = RiskModel()
        result = empty.simulate(ITERATIONS)
        assert (result.min, result.mode, result.max) == (0, 0, 0)

    def test_confidence_is_minimum_across_risks(self):
        add_point_risk(self.model, 1, 10, name="vague", confidence=Confidence.LOW)
        assert self.model.simulate(ITERATIONS).confidence == Confidence.LOW

    def test_uses_model_percentiles(self, rng):
        model = RiskModel(min_percentile=5, max_percentile=95)
        risk = model.add_risk()
        risk.add_child(NodeKind.LOSS_EVENT_FREQUENCY).set_range(1, 12, 120)
        risk.add_child(NodeKind.LOSS_MAGNITUDE).set_range(1_000, 5_000, 50_000)
        wide = model.simulate(ITERATIONS, rng=rng)
        model.set_percentiles(25, 75)
        narrow = model.simulate(ITERATIONS, rng=rng)
        assert wide.min < narrow.min and narrow.max < wide.max

    def test_container_collects_nodes(self):
        container = SimulationResult()
        self.model.simulate(ITERATIONS, container=container)
        assert self.risk.id in container
        # applied mitigations are disabled in the baseline
        applied = self.risk.applied_mitigations[0]
        assert applied.id not in container


class TestCostSimulation:
    """Test simulate_with_mitigations()."""

    def setup_method(self):
        self.model = RiskModel("costs")
        self.risk = add_point_risk(self.model, 2, 1000)
        self.mitigation = add_point_mitigation(self.model, "MFA", cost=300, effect=0.5, operation=50)

    def test_residual_and_costs(self):
        result = self.model.simulate_with_mitigations(ITERATIONS)
        assert result.residual_risk.mode == pytest.approx(1000)
        assert result.first_year.mode == pytest.approx(1350)
        assert result.following_years.mode == pytest.approx(1050)

    def test_disabled_mitigation_neither_reduces_nor_costs(self):
        self.mitigation.enabled = False
        result = self.model.simulate_with_mitigations(ITERATIONS)
        assert result.residual_risk.mode == pytest.approx(2000)
        assert result.first_year.mode == pytest.approx(2000)

    def test_auxiliary_mitigation_costs_only(self):
        self.risk.applied_mitigations[0].auxiliary = True
        result = self.model.simulate_with_mitigations(ITERATIONS)
        assert result.residual_risk.mode == pytest.approx(2000)
        assert result.first_year.mode == pytest.approx(2350)

    def test_mitigations_compound(self):
        add_point_mitigation(self.model, "EDR", cost=100, effect=0.2)
        result = self.model.simulate_with_mitigations(ITERATIONS)
        assert result.residual_risk.mode == pytest.approx(800)
        assert result.first_year.mode == pytest.approx(800 + 300 + 50 + 100)
        assert result.following_years.mode == pytest.approx(850)

    def test_confidence_per_accumulator(self):
        point(self.mitigation, 300, Confidence.LOW)
        self.mitigation.set_operation_costs(50, 50, 50, Confidence.MODERATE)
        result = self.model.simulate_with_mitigations(ITERATIONS)
        assert result.residual_risk.confidence == Confidence.HIGH
        assert result.first_year.confidence == Confidence.LOW
        assert result.following_years.confidence == Confidence.MODERATE

    def test_operation_samples(self):
        operation = self.mitigation.generate_operation_samples(ITERATIONS)
        assert operation.samples.shape == (ITERATIONS,)
        assert operation.samples.min() == operation.samples.max() == pytest.approx(50)
        assert operation.confidence == Confidence.HIGH
        assert self.model.add_mitigation("no upkeep").generate_operation_samples(ITERATIONS) is None

    def test_toggling_mitigation_marks_risk_stale(self):
        self.model.simulate_with_mitigations(ITERATIONS)
        assert self.risk.calculated and not self.risk.is_stale

        self.mitigation.enabled = True
        assert not self.risk.is_stale

        self.mitigation.enabled = False
        assert self.risk.is_stale

        self.model.simulate_with_mitigations(ITERATIONS)
        assert not self.risk.is_stale
        assert self.risk.mode == pytest.approx(2000)

    def test_unset_mitigation_cost_fails(self):
        self.model.add_mitigation("unpriced")
        assert self.model.simulate_with_mitigations(ITERATIONS) is None

    def test_iterations_validated(self):
        with pytest.raises(DomainValidationError):
            self.model.simulate_with_mitigations(100)


class TestModelStructure:
    """Test risk, mitigation and fact management."""

    def setup_method(self):
        self.model = RiskModel()
        self.risk = add_point_risk(self.model, 2, 1000)
        self.mitigation = add_point_mitigation(self.model, "MFA", cost=300, effect=0.5)

    def test_defaults(self):
        model = RiskModel()
        assert model.name == "Risk Model"
        assert (model.min_percentile, model.max_percentile) == (10, 90)

    @pytest.mark.parametrize("low,high", [(-1, 90), (10, 100.5), (60, 40)])
    def test_percentile_validation(self, low, high):
        with pytest.raises(DomainValidationError):
            RiskModel(min_percentile=low, max_percentile=high)

    def test_get_and_remove_risk(self):
        assert self.model.get_risk(self.risk.id) is self.risk
        assert self.model.remove_risk(self.risk.id)
        assert self.model.get_risk(self.risk.id) is None
        assert not self.model.remove_risk(self.risk)

    def test_remove_mitigation_drops_applied_references(self):
        assert self.risk.get_applied(self.mitigation) is not None
        assert self.model.remove_mitigation(self.mitigation.id)
        assert self.risk.applied_mitigations == []
        assert self.model.mitigations == ()

    def test_clear(self):
        self.model.clear_mitigations()
        self.model.clear_risks()
        assert self.model.risks == () and self.model.mitigations == ()

    def test_apply_twice_rejected(self):
        with pytest.raises(StructuralError):
            self.risk.apply_mitigation(self.mitigation)

    def test_foreign_mitigation_rejected(self):
        other = RiskModel()
        foreign = other.add_mitigation("foreign")
        with pytest.raises(StructuralError) as exc:
            self.risk.apply_mitigation(foreign)
        assert exc.value.error_code == ErrorCode.FOREIGN_REFERENCE

    def test_applied_mitigation_copies_name(self):
        applied = self.risk.get_applied(self.mitigation)
        assert applied.name == "MFA"
        assert applied.mitigation_cost_id == self.mitigation.id

    def test_applied_mitigations_only_via_apply(self):
        with pytest.raises(StructuralError):
            self.risk.add_child(NodeKind.APPLIED_MITIGATION)

    def test_remove_mitigation_from_risk(self):
        assert self.risk.remove_mitigation(self.mitigation)
        assert not self.risk.remove_mitigation(self.mitigation)
        assert self.model.get_mitigation(self.mitigation.id) is self.mitigation

    def test_find_node(self):
        lef = self.risk.first_child(NodeKind.LOSS_EVENT_FREQUENCY)
        assert self.model.find_node(lef.id) is lef
        assert self.model.find_node(self.mitigation.id) is self.mitigation
        assert self.model.find_node(uuid.uuid4()) is None

    def test_facts_lifecycle(self):
        evidence = self.model.add_fact(FactHardNumber(name="Incidents 2023", value=3), node=self.risk)
        orphan = self.model.add_fact(Fact(name="Vendor note"))
        assert self.risk.has_fact(evidence.id)

        assert self.model.prune_facts() == [orphan]
        assert orphan.id not in self.model.facts

        assert self.model.remove_fact(evidence.id)
        assert not self.risk.has_fact(evidence.id)
        assert len(self.model.facts) == 0

    def test_link_unknown_fact_rejected(self):
        with pytest.raises(StructuralError):
            self.model.link_fact(self.risk, uuid.uuid4())

    def test_capture_and_apply_ranges(self):
        snapshot = self.model.capture_ranges()
        lef = self.risk.first_child(NodeKind.LOSS_EVENT_FREQUENCY)
        point(lef, 7)
        assert self.model.apply_ranges(snapshot) == len(snapshot)
        assert lef.mode == 2
