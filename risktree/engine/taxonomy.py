"""
Node taxonomy.

One table describes every node kind: its range type, which children it
accepts (and how many), and how child samples combine. Leaves have no
combination rule and must be populated by the user.

    Risk                 = LEF × LM
    LossEventFrequency   = TEF × Vulnerability
    ThreatEventFrequency = ContactFrequency × ProbabilityOfAction
    Vulnerability        = ThreatCapability × (1 − ResistanceStrength)
    LossMagnitude        = Σ PrimaryLoss + Σ SecondaryRisk
    SecondaryRisk        = SLEF × SLM
    MitigatedRisk        = Risk rule, then × (1 − effect) per active mitigation
"""

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

import numpy as np

from risktree.engine import combiners
from risktree.engine.enums import Confidence, NodeKind, RangeType


@dataclass(frozen=True)
class Sampled:
    """Samples of one simulated child and the confidence they carry."""
    samples: np.ndarray
    confidence: Confidence


ChildInputs = Mapping[NodeKind, list[Sampled]]
CombineRule = Callable[[ChildInputs], Optional[Sampled]]


@dataclass(frozen=True)
class KindSpec:
    """Composition and evaluation rules of one node kind."""
    kind: NodeKind
    range_type: RangeType
    children: Mapping[NodeKind, Optional[int]] = field(default_factory=dict)  # kind → max count (None = unbounded)
    rule: Optional[CombineRule] = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def computable(self) -> bool:
        return self.rule is not None

    def accepts(self, kind: NodeKind) -> bool:
        return kind in self.children

    def max_children(self, kind: NodeKind) -> Optional[int]:
        return self.children.get(kind, 0)


# ── Combination rules ────────────────────────────────────────────────────

def _single(inputs: ChildInputs, kind: NodeKind) -> Optional[Sampled]:
    found = inputs.get(kind, [])
    return found[0] if len(found) == 1 else None


def _product_of(left: NodeKind, right: NodeKind) -> CombineRule:
    def rule(inputs: ChildInputs) -> Optional[Sampled]:
        a, b = _single(inputs, left), _single(inputs, right)
        if a is None or b is None:
            return None
        samples = combiners.product(a.samples, b.samples)
        if samples is None:
            return None
        return Sampled(samples, min(a.confidence, b.confidence))
    rule.__name__ = f"product_{left.value}_{right.value}"
    return rule


def _vulnerability(inputs: ChildInputs) -> Optional[Sampled]:
    capability = _single(inputs, NodeKind.THREAT_CAPABILITY)
    resistance = _single(inputs, NodeKind.RESISTANCE_STRENGTH)
    if capability is None or resistance is None:
        return None
    samples = combiners.complement_product(capability.samples, resistance.samples)
    if samples is None:
        return None
    return Sampled(samples, min(capability.confidence, resistance.confidence))


def _loss_magnitude(inputs: ChildInputs) -> Optional[Sampled]:
    losses = [
        *inputs.get(NodeKind.PRIMARY_LOSS, []),
        *inputs.get(NodeKind.SECONDARY_RISK, []),
    ]
    if not losses:
        return None
    samples = combiners.total([loss.samples for loss in losses])
    if samples is None:
        return None
    return Sampled(samples, min(loss.confidence for loss in losses))


_risk = _product_of(NodeKind.LOSS_EVENT_FREQUENCY, NodeKind.LOSS_MAGNITUDE)


def _mitigated_risk(inputs: ChildInputs) -> Optional[Sampled]:
    base = _risk(inputs)
    if base is None:
        return None
    effects = inputs.get(NodeKind.APPLIED_MITIGATION, [])
    samples = combiners.mitigate(base.samples, [effect.samples for effect in effects])
    if samples is None:
        return None
    confidence = min([base.confidence, *(effect.confidence for effect in effects)])
    return Sampled(samples, confidence)


# ── Table ────────────────────────────────────────────────────────────────

_RISK_CHILDREN = {
    NodeKind.LOSS_EVENT_FREQUENCY: 1,
    NodeKind.LOSS_MAGNITUDE: 1,
}

TAXONOMY: dict[NodeKind, KindSpec] = {
    spec.kind: spec
    for spec in (
        KindSpec(NodeKind.RISK, RangeType.MONEY, _RISK_CHILDREN, _risk),
        KindSpec(
            NodeKind.MITIGATED_RISK,
            RangeType.MONEY,
            {**_RISK_CHILDREN, NodeKind.APPLIED_MITIGATION: None},
            _mitigated_risk,
        ),
        KindSpec(
            NodeKind.LOSS_EVENT_FREQUENCY,
            RangeType.FREQUENCY,
            {NodeKind.THREAT_EVENT_FREQUENCY: 1, NodeKind.VULNERABILITY: 1},
            _product_of(NodeKind.THREAT_EVENT_FREQUENCY, NodeKind.VULNERABILITY),
        ),
        KindSpec(
            NodeKind.THREAT_EVENT_FREQUENCY,
            RangeType.FREQUENCY,
            {NodeKind.CONTACT_FREQUENCY: 1, NodeKind.PROBABILITY_OF_ACTION: 1},
            _product_of(NodeKind.CONTACT_FREQUENCY, NodeKind.PROBABILITY_OF_ACTION),
        ),
        KindSpec(
            NodeKind.VULNERABILITY,
            RangeType.PERCENTAGE,
            {NodeKind.THREAT_CAPABILITY: 1, NodeKind.RESISTANCE_STRENGTH: 1},
            _vulnerability,
        ),
        KindSpec(
            NodeKind.LOSS_MAGNITUDE,
            RangeType.MONEY,
            {NodeKind.PRIMARY_LOSS: None, NodeKind.SECONDARY_RISK: None},
            _loss_magnitude,
        ),
        KindSpec(
            NodeKind.SECONDARY_RISK,
            RangeType.MONEY,
            {NodeKind.SECONDARY_LOSS_EVENT_FREQUENCY: 1, NodeKind.SECONDARY_LOSS_MAGNITUDE: 1},
            _product_of(NodeKind.SECONDARY_LOSS_EVENT_FREQUENCY, NodeKind.SECONDARY_LOSS_MAGNITUDE),
        ),
        KindSpec(NodeKind.CONTACT_FREQUENCY, RangeType.FREQUENCY),
        KindSpec(NodeKind.PROBABILITY_OF_ACTION, RangeType.PERCENTAGE),
        KindSpec(NodeKind.THREAT_CAPABILITY, RangeType.PERCENTAGE),
        KindSpec(NodeKind.RESISTANCE_STRENGTH, RangeType.PERCENTAGE),
        KindSpec(NodeKind.PRIMARY_LOSS, RangeType.MONEY),
        KindSpec(NodeKind.SECONDARY_LOSS_EVENT_FREQUENCY, RangeType.PERCENTAGE),
        KindSpec(NodeKind.SECONDARY_LOSS_MAGNITUDE, RangeType.MONEY),
        KindSpec(NodeKind.MITIGATION_COST, RangeType.MONEY),
        KindSpec(NodeKind.APPLIED_MITIGATION, RangeType.PERCENTAGE),
    )
}


def spec_for(kind: NodeKind) -> KindSpec:
    return TAXONOMY[NodeKind(kind)]


def required_children(kind: NodeKind) -> frozenset[NodeKind]:
    """Kinds that must all be present before the node can be computed."""
    spec = spec_for(kind)
    if not spec.computable:
        return frozenset()
    if kind is NodeKind.LOSS_MAGNITUDE:
        return frozenset()  # any one loss suffices
    return frozenset(k for k, limit in spec.children.items() if limit == 1)
