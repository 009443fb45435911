"""
Model observers.

Subclass :class:`ModelObserver` and override the hooks you need, then
register the instance with ``RiskModel.subscribe()``. A failing observer
never interrupts a simulation: its exception is logged and discarded
unless the dispatcher was created with ``propagate_errors=True``.
"""

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from risktree.engine.range import Range
    from risktree.model.optimizer import OptimizationResult
    from risktree.model.risk_model import RiskModel
    from risktree.model.risks import MitigatedRisk
    from risktree.model.simulation_result import CostSimulation

logger = structlog.get_logger(__name__)


class ModelObserver:
    """No-op base; every hook is optional."""

    def on_risk_simulated(self, model: "RiskModel", risk: "MitigatedRisk", result: "Range") -> None:
        pass

    def on_simulation_completed(self, model: "RiskModel", result: "Range") -> None:
        pass

    def on_costs_simulated(self, model: "RiskModel", result: "CostSimulation") -> None:
        pass

    def on_optimization_completed(self, model: "RiskModel", result: "OptimizationResult") -> None:
        pass


class ObserverDispatcher:
    """Fan-out of model events to registered observers."""

    def __init__(self, propagate_errors: bool = False):
        self._observers: list[ModelObserver] = []
        self.propagate_errors = propagate_errors

    def subscribe(self, observer: ModelObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unsubscribe(self, observer: ModelObserver) -> bool:
        if observer in self._observers:
            self._observers.remove(observer)
            return True
        return False

    def __len__(self) -> int:
        return len(self._observers)

    def notify(self, hook: str, *args) -> int:
        """Call ``hook`` on every observer. Returns the number of failures."""
        failures = 0
        for observer in list(self._observers):
            handler = getattr(observer, hook, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception as e:
                failures += 1
                logger.error(
                    "observer_failed",
                    hook=hook,
                    observer=type(observer).__name__,
                    error=str(e),
                    exc_info=True,
                )
                if self.propagate_errors:
                    raise
        return failures
