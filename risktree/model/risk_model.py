"""
Risk model aggregate.

A RiskModel owns the mitigated risks, the mitigation definitions and the
facts collection. It offers three computations:

- simulate: baseline risk with every mitigation disabled
- simulate_with_mitigations: residual risk plus first-year and
  following-years total cost for the current enabled set
- optimize_mitigations: power-set search for the cheapest enabled set

A model is not thread-safe; distinct models are fully independent.
"""

import threading
import uuid
from typing import Collection, Iterable, Iterator, Optional, Union

import numpy as np
import structlog

from risktree.config import settings
from risktree.engine import statistics
from risktree.engine.enums import Confidence, ControlType, OptimizationParameter, RangeType
from risktree.engine.node import Node, SimulationContainer
from risktree.engine.range import Range
from risktree.engine.taxonomy import Sampled
from risktree.engine.tracking import ChangesTracker
from risktree.exceptions import ErrorCode, ErrorContext, StructuralError
from risktree.facts.fact import Fact, FactsCollection
from risktree.model.mitigations import MitigationCost
from risktree.model.observers import ModelObserver, ObserverDispatcher
from risktree.model.optimizer import MitigationOptimizer, OptimizationResult
from risktree.model.risks import MitigatedRisk
from risktree.model.simulation_result import CostSimulation

logger = structlog.get_logger(__name__)

DEFAULT_MODEL_NAME = "Risk Model"


class RiskModel(ChangesTracker):
    """Aggregate root of a quantitative risk analysis."""

    def __init__(
        self,
        name: str = DEFAULT_MODEL_NAME,
        description: Optional[str] = None,
        model_id: Optional[uuid.UUID] = None,
        min_percentile: Optional[float] = None,
        max_percentile: Optional[float] = None,
        propagate_observer_errors: bool = False,
    ):
        self.id: uuid.UUID = model_id or uuid.uuid4()
        self.name = name
        self.description = description
        self._min_percentile = settings.default_min_percentile
        self._max_percentile = settings.default_max_percentile
        self.set_percentiles(
            self._min_percentile if min_percentile is None else min_percentile,
            self._max_percentile if max_percentile is None else max_percentile,
        )
        self._risks: list[MitigatedRisk] = []
        self._mitigations: list[MitigationCost] = []
        self.facts = FactsCollection()
        self._observers = ObserverDispatcher(propagate_errors=propagate_observer_errors)
        self._init_tracking()

    def __repr__(self) -> str:
        return f"RiskModel(id={self.id}, name={self.name!r}, risks={len(self._risks)}, mitigations={len(self._mitigations)})"

    # ── Percentiles ──────────────────────────────────────────────────────

    @property
    def min_percentile(self) -> float:
        return self._min_percentile

    @min_percentile.setter
    def min_percentile(self, value: float) -> None:
        self.set_percentiles(value, self._max_percentile)

    @property
    def max_percentile(self) -> float:
        return self._max_percentile

    @max_percentile.setter
    def max_percentile(self, value: float) -> None:
        self.set_percentiles(self._min_percentile, value)

    def set_percentiles(self, min_percentile: float, max_percentile: float) -> None:
        statistics.validate_percentiles(min_percentile, max_percentile)
        self._min_percentile = float(min_percentile)
        self._max_percentile = float(max_percentile)

    # ── Risks ────────────────────────────────────────────────────────────

    @property
    def risks(self) -> tuple[MitigatedRisk, ...]:
        return tuple(self._risks)

    def add_risk(self, name: Optional[str] = None, description: Optional[str] = None) -> MitigatedRisk:
        return self.attach_risk(MitigatedRisk(name=name, description=description))

    def attach_risk(self, risk: MitigatedRisk) -> MitigatedRisk:
        if risk.owner is not None and risk.owner is not self:
            raise StructuralError(
                f"Risk {risk.id} belongs to another model",
                error_code=ErrorCode.FOREIGN_REFERENCE,
                context=ErrorContext(model_id=str(self.id), node_id=str(risk.id)),
            )
        for applied in risk.applied_mitigations:
            if applied.mitigation.owner is not self:
                raise StructuralError(
                    f"Risk {risk.id} references mitigation {applied.mitigation_cost_id} outside this model",
                    error_code=ErrorCode.FOREIGN_REFERENCE,
                    context=ErrorContext(model_id=str(self.id), node_id=str(risk.id)),
                )
        risk.owner = self
        if risk not in self._risks:
            self._risks.append(risk)
        self.touch()
        return risk

    def get_risk(self, risk_id: uuid.UUID) -> Optional[MitigatedRisk]:
        return next((risk for risk in self._risks if risk.id == risk_id), None)

    def remove_risk(self, risk: Union[MitigatedRisk, uuid.UUID]) -> bool:
        risk_id = risk.id if isinstance(risk, MitigatedRisk) else risk
        found = self.get_risk(risk_id)
        if found is None:
            return False
        self._risks.remove(found)
        found.owner = None
        self.touch()
        logger.info("risk_removed", model_id=str(self.id), risk_id=str(risk_id))
        return True

    def clear_risks(self) -> None:
        for risk in self._risks:
            risk.owner = None
        self._risks.clear()
        self.touch()

    # ── Mitigations ──────────────────────────────────────────────────────

    @property
    def mitigations(self) -> tuple[MitigationCost, ...]:
        return tuple(self._mitigations)

    def add_mitigation(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        control_type: ControlType = ControlType.UNKNOWN,
    ) -> MitigationCost:
        return self.attach_mitigation(
            MitigationCost(name=name, description=description, control_type=control_type)
        )

    def attach_mitigation(self, mitigation: MitigationCost) -> MitigationCost:
        if mitigation.owner is not None and mitigation.owner is not self:
            raise StructuralError(
                f"Mitigation {mitigation.id} belongs to another model",
                error_code=ErrorCode.FOREIGN_REFERENCE,
                context=ErrorContext(model_id=str(self.id), node_id=str(mitigation.id)),
            )
        mitigation.owner = self
        if mitigation not in self._mitigations:
            self._mitigations.append(mitigation)
        self.touch()
        return mitigation

    def get_mitigation(self, mitigation_id: uuid.UUID) -> Optional[MitigationCost]:
        return next((m for m in self._mitigations if m.id == mitigation_id), None)

    def remove_mitigation(self, mitigation: Union[MitigationCost, uuid.UUID]) -> bool:
        """Remove a definition and every applied reference to it."""
        mitigation_id = mitigation.id if isinstance(mitigation, MitigationCost) else mitigation
        found = self.get_mitigation(mitigation_id)
        if found is None:
            return False
        for risk in self._risks:
            risk.remove_mitigation(found)
        self._mitigations.remove(found)
        found.owner = None
        self.touch()
        logger.info("mitigation_removed", model_id=str(self.id), mitigation_id=str(mitigation_id))
        return True

    def clear_mitigations(self) -> None:
        for mitigation in list(self._mitigations):
            self.remove_mitigation(mitigation)

    def set_enabled_state(self, enabled: Collection[MitigationCost]) -> None:
        """Enable exactly the given mitigations, disable every other one."""
        enabled_ids = {m.id for m in enabled}
        for mitigation in self._mitigations:
            mitigation.enabled = mitigation.id in enabled_ids

    def enabled_state(self) -> dict[uuid.UUID, bool]:
        return {m.id: m.enabled for m in self._mitigations}

    def restore_enabled_state(self, state: dict[uuid.UUID, bool]) -> None:
        for mitigation in self._mitigations:
            if mitigation.id in state:
                mitigation.enabled = state[mitigation.id]

    # ── Nodes ────────────────────────────────────────────────────────────

    def nodes(self) -> Iterator[Node]:
        """Every node of the model: risk trees first, then mitigation definitions."""
        for risk in self._risks:
            yield from risk.walk()
        yield from self._mitigations

    def find_node(self, node_id: uuid.UUID) -> Optional[Node]:
        return next((node for node in self.nodes() if node.id == node_id), None)

    def capture_ranges(self) -> dict[uuid.UUID, Range]:
        return {node.id: node.range for node in self.nodes()}

    def apply_ranges(self, snapshots: dict[uuid.UUID, Range]) -> int:
        applied = 0
        for node in self.nodes():
            snapshot = snapshots.get(node.id)
            if snapshot is not None:
                node.restore_range(snapshot)
                applied += 1
        return applied

    # ── Facts ────────────────────────────────────────────────────────────

    def add_fact(self, fact: Fact, node: Optional[Node] = None) -> Fact:
        self.facts.add(fact)
        if node is not None:
            self.link_fact(node, fact.id)
        return fact

    def link_fact(self, node: Node, fact_id: uuid.UUID) -> bool:
        if fact_id not in self.facts:
            raise StructuralError(
                f"Fact {fact_id} is not part of model {self.id}",
                error_code=ErrorCode.FOREIGN_REFERENCE,
                context=ErrorContext(model_id=str(self.id), node_id=str(node.id)),
            )
        return node.add_fact(fact_id)

    def remove_fact(self, fact_id: uuid.UUID) -> bool:
        """Drop a fact from the collection and from every node referencing it."""
        if self.facts.remove(fact_id) is None:
            return False
        for node in self.nodes():
            node.remove_fact(fact_id)
        return True

    def prune_facts(self) -> list[Fact]:
        """Remove facts no node refers to."""
        referenced = {fact_id for node in self.nodes() for fact_id in node.facts}
        removed = [fact for fact in self.facts if fact.id not in referenced]
        for fact in removed:
            self.facts.remove(fact.id)
        return removed

    # ── Observers ────────────────────────────────────────────────────────

    def subscribe(self, observer: ModelObserver) -> None:
        self._observers.subscribe(observer)

    def unsubscribe(self, observer: ModelObserver) -> bool:
        return self._observers.unsubscribe(observer)

    def notify(self, hook: str, *args) -> int:
        return self._observers.notify(hook, self, *args)

    # ── Simulation ───────────────────────────────────────────────────────

    def simulate(
        self,
        iterations: Optional[int] = None,
        container: Optional[SimulationContainer] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> Optional[Range]:
        """
        Baseline risk: every mitigation disabled, enabled risks summed.

        Returns None when any enabled risk cannot be simulated. The enabled
        flags of the mitigations are restored on every path.
        """
        iterations = self._iterations(iterations)
        state = self.enabled_state()
        try:
            self.set_enabled_state(())
            residual = self._simulate_residual(iterations, container, rng)
        finally:
            self.restore_enabled_state(state)

        if residual is None:
            logger.warning("model_simulation_failed", model_id=str(self.id), risks=len(self._risks))
            return None

        result = self._to_range(residual.samples, residual.confidence)
        logger.info(
            "model_simulated",
            model_id=str(self.id),
            iterations=iterations,
            mode=round(result.mode, 2),
            confidence=result.confidence.label,
        )
        self.notify("on_simulation_completed", result)
        return result

    def simulate_with_mitigations(
        self,
        iterations: Optional[int] = None,
        container: Optional[SimulationContainer] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> Optional[CostSimulation]:
        """Residual risk and total costs with the current enabled mitigations."""
        iterations = self._iterations(iterations)
        result = self.simulate_costs(iterations, container, rng, notify=True)
        if result is None:
            logger.warning("cost_simulation_failed", model_id=str(self.id))
            return None
        self.notify("on_costs_simulated", result)
        return result

    def simulate_costs(
        self,
        iterations: int,
        container: Optional[SimulationContainer] = None,
        rng: Optional[np.random.Generator] = None,
        notify: bool = False,
    ) -> Optional[CostSimulation]:
        """
        Cost simulation without logging or a completion event.

        Per-risk events fire only with ``notify=True``; optimizer sub-runs leave it off.
        """
        residual = self._simulate_residual(iterations, container, rng, notify=notify)
        if residual is None:
            return None

        first_year = residual.samples.copy()
        following_years = residual.samples.copy()
        first_confidences = [residual.confidence]
        following_confidences = [residual.confidence]

        for mitigation in self._mitigations:
            if not mitigation.enabled:
                continue
            implementation = mitigation._simulate(
                iterations, self._min_percentile, self._max_percentile, container, rng,
            )
            if implementation is None:
                logger.debug("mitigation_cost_unavailable", mitigation_id=str(mitigation.id))
                return None
            first_year += implementation
            first_confidences.append(mitigation.confidence)

            operation = mitigation.generate_operation_samples(iterations, rng=rng)
            if operation is not None:
                first_year += operation.samples
                following_years += operation.samples
                first_confidences.append(operation.confidence)
                following_confidences.append(operation.confidence)

        return CostSimulation(
            residual_risk=self._to_range(residual.samples, residual.confidence),
            first_year=self._to_range(first_year, min(first_confidences)),
            following_years=self._to_range(following_years, min(following_confidences)),
        )

    def optimize_mitigations(
        self,
        selected_mitigations: Optional[Iterable[Union[MitigationCost, uuid.UUID]]] = None,
        parameter: OptimizationParameter = OptimizationParameter.MODE,
        optimize_for_following_years: bool = False,
        iterations: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> Optional[OptimizationResult]:
        """Search every non-empty subset of the candidates; see MitigationOptimizer."""
        return MitigationOptimizer(self).optimize(
            selected_mitigations=selected_mitigations,
            parameter=parameter,
            optimize_for_following_years=optimize_for_following_years,
            iterations=iterations,
            cancel_event=cancel_event,
            rng=rng,
        )

    # ── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _iterations(iterations: Optional[int]) -> int:
        return statistics.validate_iterations(
            settings.default_iterations if iterations is None else iterations
        )

    def _simulate_residual(
        self,
        iterations: int,
        container: Optional[SimulationContainer],
        rng: Optional[np.random.Generator],
        notify: bool = True,
    ) -> Optional[Sampled]:
        total = np.zeros(iterations, dtype=np.float64)
        confidences: list[Confidence] = []
        for risk in self._risks:
            if not risk.enabled:
                continue
            samples = risk._simulate(
                iterations, self._min_percentile, self._max_percentile, container, rng,
            )
            if samples is None:
                logger.debug("risk_simulation_failed", model_id=str(self.id), risk_id=str(risk.id))
                return None
            total += samples
            confidences.append(risk.confidence)
            if notify:
                self.notify("on_risk_simulated", risk, risk.range)
        return Sampled(total, min(confidences, default=Confidence.HIGH))

    def _to_range(self, samples: np.ndarray, confidence: Confidence) -> Range:
        return Range.from_samples(
            RangeType.MONEY, samples, self._min_percentile, self._max_percentile, confidence,
        )
