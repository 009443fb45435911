"""
Simulation outputs.

CostSimulation is the value returned by a cost-aware model simulation.
SimulationResult is a container collecting the samples of every node
touched by a simulation, plus range snapshots that can be written back
into the model later.
"""

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import numpy as np

from risktree.engine.enums import NodeKind, OptimizationParameter, RangeType
from risktree.engine.range import Range

if TYPE_CHECKING:
    from risktree.engine.node import Node
    from risktree.model.risk_model import RiskModel


@dataclass(frozen=True)
class CostSimulation:
    """Residual risk and total costs for the current set of enabled mitigations."""
    residual_risk: Range     # Σ enabled risks after active mitigations
    first_year: Range        # residual + implementation + operation costs
    following_years: Range   # residual + operation costs

    def cost(self, following_years: bool = False) -> Range:
        return self.following_years if following_years else self.first_year


def range_statistic(value: Range, parameter: OptimizationParameter) -> float:
    parameter = OptimizationParameter(parameter)
    if parameter is OptimizationParameter.MIN:
        return value.min
    if parameter is OptimizationParameter.MAX:
        return value.max
    return value.mode


@dataclass(frozen=True)
class NodeSamples:
    kind: NodeKind
    range_type: RangeType
    samples: Optional[np.ndarray]  # None when samples are not retained


class SimulationResult:
    """Collects per-node samples; usable as a simulation container."""

    def __init__(self, keep_samples: bool = True):
        self.keep_samples = keep_samples
        self._nodes: dict[uuid.UUID, NodeSamples] = {}
        self._snapshots: dict[uuid.UUID, Range] = {}
        self.costs: Optional[CostSimulation] = None

    # ── Container protocol ───────────────────────────────────────────────

    def add_simulation(self, node: "Node", samples: np.ndarray) -> None:
        self._nodes[node.id] = NodeSamples(
            kind=node.kind,
            range_type=node.range_type,
            samples=samples if self.keep_samples else None,
        )

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def node_ids(self) -> list[uuid.UUID]:
        return list(self._nodes)

    def __contains__(self, node_id: uuid.UUID) -> bool:
        return node_id in self._nodes

    def samples_for(self, node_id: uuid.UUID) -> Optional[np.ndarray]:
        entry = self._nodes.get(node_id)
        return entry.samples if entry else None

    def range_type_for(self, node_id: uuid.UUID) -> Optional[RangeType]:
        entry = self._nodes.get(node_id)
        return entry.range_type if entry else None

    @property
    def snapshots(self) -> dict[uuid.UUID, Range]:
        return {node_id: snapshot.copy() for node_id, snapshot in self._snapshots.items()}

    # ── Snapshots ────────────────────────────────────────────────────────

    def store_results(self, model: "RiskModel") -> None:
        """Capture the current range of every node in the model."""
        self._snapshots = model.capture_ranges()

    def apply(self, model: "RiskModel") -> int:
        """Write the stored ranges back into the model's nodes."""
        return model.apply_ranges(self._snapshots)

    def statistic(
        self,
        parameter: OptimizationParameter = OptimizationParameter.MODE,
        following_years: bool = False,
    ) -> Optional[float]:
        if self.costs is None:
            return None
        return range_statistic(self.costs.cost(following_years), parameter)

    def is_better_than(
        self,
        other: Optional["SimulationResult"],
        parameter: OptimizationParameter = OptimizationParameter.MODE,
        following_years: bool = False,
    ) -> bool:
        """Strictly lower cost statistic than ``other``; anything beats nothing."""
        mine = self.statistic(parameter, following_years)
        if mine is None:
            return False
        if other is None:
            return True
        theirs = other.statistic(parameter, following_years)
        return theirs is None or mine < theirs
