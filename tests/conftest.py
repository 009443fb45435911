"""
Test fixtures for RiskTree.

Provides:
- Seeded numpy Generator
- Iteration count used by most tests
- Model factories with point estimates, so results are exact
"""

import numpy as np
import pytest

from risktree.engine.enums import Confidence, NodeKind
from risktree.model import MitigatedRisk, MitigationCost, RiskModel

ITERATIONS = 10_000


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(20240601)


def point(node, value: float, confidence: Confidence = Confidence.HIGH) -> None:
    """Give a node a zero-width estimate: every sample equals ``value``."""
    node.set_range(value, value, value, confidence)


def add_point_risk(
    model: RiskModel,
    frequency: float,
    magnitude: float,
    name: str = "risk",
    confidence: Confidence = Confidence.HIGH,
) -> MitigatedRisk:
    """Risk = frequency × magnitude, both point estimates."""
    risk = model.add_risk(name)
    point(risk.add_child(NodeKind.LOSS_EVENT_FREQUENCY), frequency, confidence)
    point(risk.add_child(NodeKind.LOSS_MAGNITUDE), magnitude, confidence)
    return risk


def add_point_mitigation(
    model: RiskModel,
    name: str,
    cost: float,
    effect: float,
    operation: float | None = None,
    confidence: Confidence = Confidence.HIGH,
) -> MitigationCost:
    """Mitigation with point cost, applied with a point effect to every risk."""
    mitigation = model.add_mitigation(name)
    point(mitigation, cost, confidence)
    if operation is not None:
        mitigation.set_operation_costs(operation, operation, operation, confidence)
    for risk in model.risks:
        point(risk.apply_mitigation(mitigation), effect, confidence)
    return mitigation


@pytest.fixture
def model() -> RiskModel:
    return RiskModel("Test model")
