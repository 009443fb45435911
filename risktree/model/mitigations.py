"""
Mitigations.

A MitigationCost is defined once per model: its range is the one-off
implementation cost, ``operation_costs`` the optional recurring yearly cost.
An AppliedMitigation is the per-risk link to it and carries the estimated
percentage reduction of that risk.
"""

import uuid
from typing import TYPE_CHECKING, Optional

import numpy as np

from risktree.engine.enums import Confidence, ControlType, NodeKind, RangeType
from risktree.engine.node import Node, register_node_class
from risktree.engine.range import Range
from risktree.engine.taxonomy import Sampled

if TYPE_CHECKING:
    from risktree.model.risk_model import RiskModel


@register_node_class
class MitigationCost(Node):
    """A candidate control with implementation and operation costs."""

    kind = NodeKind.MITIGATION_COST

    def __init__(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        node_id: Optional[uuid.UUID] = None,
        control_type: ControlType = ControlType.UNKNOWN,
        enabled: bool = True,
    ):
        super().__init__(name=name, description=description, node_id=node_id)
        self._control_type = ControlType(control_type)
        self._enabled = bool(enabled)
        self._operation_costs: Optional[Range] = None
        self.owner: Optional["RiskModel"] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        value = bool(value)
        if value == self._enabled:
            return
        self._enabled = value
        for applied in self.applications():
            applied._invalidate_ancestors()

    @property
    def control_type(self) -> ControlType:
        return self._control_type

    @control_type.setter
    def control_type(self, value: ControlType) -> None:
        self._control_type = ControlType(value)
        self.touch()

    @property
    def operation_costs(self) -> Optional[Range]:
        return self._operation_costs.copy() if self._operation_costs else None

    def set_operation_costs(
        self,
        min: float,
        mode: float,
        max: float,
        confidence: Confidence = Confidence.MODERATE,
    ) -> None:
        costs = Range(RangeType.MONEY)
        costs.set(min, mode, max, confidence)
        self._operation_costs = costs
        self.touch()

    def clear_operation_costs(self) -> None:
        self._operation_costs = None
        self.touch()

    def applications(self) -> list["AppliedMitigation"]:
        """Applied mitigations linked to this one across the owning model."""
        if self.owner is None:
            return []
        return [
            applied
            for risk in self.owner.risks
            for applied in risk.applied_mitigations
            if applied.mitigation is self
        ]

    def generate_operation_samples(
        self,
        iterations: int,
        rng: Optional[np.random.Generator] = None,
    ) -> Optional[Sampled]:
        """Recurring yearly cost samples, or None when no operation costs are set."""
        if self._operation_costs is None:
            return None
        samples = self._operation_costs.generate_samples(iterations, rng=rng)
        if samples is None:
            return None
        return Sampled(samples, self._operation_costs.confidence)


@register_node_class
class AppliedMitigation(Node):
    """Reduction of one risk by one MitigationCost."""

    kind = NodeKind.APPLIED_MITIGATION

    def __init__(
        self,
        mitigation: MitigationCost,
        name: Optional[str] = None,
        description: Optional[str] = None,
        node_id: Optional[uuid.UUID] = None,
        auxiliary: bool = False,
    ):
        super().__init__(
            name=name if name is not None else mitigation.name,
            description=description if description is not None else mitigation.description,
            node_id=node_id,
        )
        self._mitigation = mitigation
        self._auxiliary = bool(auxiliary)

    @property
    def mitigation(self) -> MitigationCost:
        return self._mitigation

    @property
    def mitigation_cost_id(self) -> uuid.UUID:
        return self._mitigation.id

    @property
    def auxiliary(self) -> bool:
        """Auxiliary mitigations are costed but do not reduce the risk."""
        return self._auxiliary

    @auxiliary.setter
    def auxiliary(self, value: bool) -> None:
        self._auxiliary = bool(value)
        self.touch()
        self._invalidate_ancestors()

    @property
    def enabled(self) -> bool:
        return self._mitigation.enabled

    @property
    def is_effective(self) -> bool:
        return self.enabled and not self._auxiliary
