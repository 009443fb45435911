"""
Risk model aggregate.

Components:
- MitigationCost / AppliedMitigation: mitigation definitions and their per-risk effect
- MitigatedRisk: risk roots reduced by active mitigations
- RiskModel: baseline and cost simulation, mitigation search
- MitigationOptimizer: power-set search over mitigations
- ModelObserver: optional simulation event hooks
"""

from risktree.model.mitigations import AppliedMitigation, MitigationCost
from risktree.model.observers import ModelObserver, ObserverDispatcher
from risktree.model.optimizer import MitigationOptimizer, OptimizationResult
from risktree.model.risk_model import RiskModel
from risktree.model.risks import MitigatedRisk
from risktree.model.simulation_result import CostSimulation, SimulationResult

__all__ = [
    "AppliedMitigation",
    "CostSimulation",
    "MitigatedRisk",
    "MitigationCost",
    "MitigationOptimizer",
    "ModelObserver",
    "ObserverDispatcher",
    "OptimizationResult",
    "RiskModel",
    "SimulationResult",
]
