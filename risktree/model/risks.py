"""Risk roots of a model, optionally reduced by applied mitigations."""

import uuid
from typing import TYPE_CHECKING, Optional, Union

import structlog

from risktree.engine.enums import NodeKind
from risktree.engine.node import Node, register_node_class
from risktree.exceptions import ErrorCode, ErrorContext, StructuralError
from risktree.model.mitigations import AppliedMitigation, MitigationCost

if TYPE_CHECKING:
    from risktree.model.risk_model import RiskModel

logger = structlog.get_logger(__name__)


@register_node_class
class MitigatedRisk(Node):
    """
    A risk (LEF × LM) after the reductions of its active mitigations.

    Only applied mitigations whose MitigationCost is enabled and which are
    not auxiliary reduce the samples.
    """

    kind = NodeKind.MITIGATED_RISK

    def __init__(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        node_id: Optional[uuid.UUID] = None,
        enabled: bool = True,
    ):
        super().__init__(name=name, description=description, node_id=node_id)
        self._enabled = bool(enabled)
        self.owner: Optional["RiskModel"] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = bool(value)
        self.touch()

    # ── Mitigations ──────────────────────────────────────────────────────

    @property
    def applied_mitigations(self) -> list[AppliedMitigation]:
        return self.children_of(NodeKind.APPLIED_MITIGATION)

    def get_applied(self, mitigation: Union[MitigationCost, uuid.UUID]) -> Optional[AppliedMitigation]:
        mitigation_id = mitigation.id if isinstance(mitigation, MitigationCost) else mitigation
        return next(
            (am for am in self.applied_mitigations if am.mitigation_cost_id == mitigation_id),
            None,
        )

    def apply_mitigation(
        self,
        mitigation: MitigationCost,
        auxiliary: bool = False,
    ) -> AppliedMitigation:
        """Link a model mitigation to this risk; the effect range is set afterwards."""
        if self.owner is not None and mitigation.owner is not self.owner:
            raise StructuralError(
                f"Mitigation {mitigation.id} does not belong to this model",
                error_code=ErrorCode.FOREIGN_REFERENCE,
                context=ErrorContext(node_id=str(self.id)),
            )
        if self.get_applied(mitigation) is not None:
            raise StructuralError(
                f"Mitigation {mitigation.id} is already applied to risk {self.id}",
                error_code=ErrorCode.CHILD_LIMIT_REACHED,
                context=ErrorContext(node_id=str(self.id)),
            )
        applied = AppliedMitigation(mitigation, auxiliary=auxiliary)
        self._attach(applied)
        logger.debug("mitigation_applied", risk=str(self.id), mitigation=str(mitigation.id))
        return applied

    def remove_mitigation(self, mitigation: Union[MitigationCost, uuid.UUID]) -> bool:
        applied = self.get_applied(mitigation)
        if applied is None:
            return False
        return self.remove_child(applied)

    def remove_mitigations(self) -> None:
        for applied in self.applied_mitigations:
            self.remove_child(applied)

    def add_child(self, kind: NodeKind, name: Optional[str] = None, description: Optional[str] = None) -> Node:
        if NodeKind(kind) is NodeKind.APPLIED_MITIGATION:
            raise StructuralError(
                "Applied mitigations are created with apply_mitigation()",
                error_code=ErrorCode.CHILD_NOT_ALLOWED,
                context=ErrorContext(node_id=str(self.id)),
            )
        return super().add_child(kind, name=name, description=description)

    def _simulation_inputs(self) -> list[Node]:
        return [
            child for child in self._children
            if not isinstance(child, AppliedMitigation) or child.is_effective
        ]
