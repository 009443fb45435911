"""
Mitigation power-set optimizer.

Evaluates every non-empty subset of the candidate mitigations, encoded as
bit masks 1 … 2^N − 1, by enabling exactly that subset and running a cost
simulation. The subset with the lowest chosen statistic of the first-year
(or following-years) cost wins.

Cost grows as 2^N full model simulations, so the number of candidates is
capped by ``settings.optimizer_max_candidates``. The enabled flags are
restored on every exit path.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional, Union

import numpy as np
import structlog

from risktree.config import settings
from risktree.engine import statistics
from risktree.engine.enums import OptimizationParameter
from risktree.engine.range import Range
from risktree.exceptions import ErrorCode, OptimizationCancelledError, OptimizationError
from risktree.model.mitigations import MitigationCost
from risktree.model.simulation_result import SimulationResult

if TYPE_CHECKING:
    from risktree.model.risk_model import RiskModel

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OptimizationResult:
    """Best subset found by the search and its cost ranges."""
    mitigations: tuple[MitigationCost, ...]
    first_year: Range
    following_years: Range
    residual_risk: Range
    parameter: OptimizationParameter
    optimize_for_following_years: bool
    statistic: float                 # value of the minimized statistic
    evaluated_subsets: int           # 2^N − 1 unless cancelled
    failed_subsets: int              # subsets whose simulation yielded nothing
    snapshots: dict[uuid.UUID, Range] = field(default_factory=dict, repr=False)

    @property
    def mitigation_ids(self) -> list[uuid.UUID]:
        return [m.id for m in self.mitigations]

    @property
    def target(self) -> Range:
        return self.following_years if self.optimize_for_following_years else self.first_year


class MitigationOptimizer:
    """Exhaustive search over subsets of a model's mitigations."""

    def __init__(self, model: "RiskModel", max_candidates: Optional[int] = None):
        self._model = model
        self._max_candidates = max_candidates or settings.optimizer_max_candidates

    def candidates(
        self,
        selected: Optional[Iterable[Union[MitigationCost, uuid.UUID]]] = None,
    ) -> list[MitigationCost]:
        """Model mitigations restricted to ``selected``, in model order."""
        mitigations = list(self._model.mitigations)
        if selected is None:
            return mitigations

        wanted = {m.id if isinstance(m, MitigationCost) else m for m in selected}
        known = {m.id for m in mitigations}
        unknown = wanted - known
        if unknown:
            logger.warning(
                "optimizer_unknown_mitigations_ignored",
                model_id=str(self._model.id),
                unknown=sorted(str(u) for u in unknown),
            )
        return [m for m in mitigations if m.id in wanted]

    def optimize(
        self,
        selected_mitigations: Optional[Iterable[Union[MitigationCost, uuid.UUID]]] = None,
        parameter: OptimizationParameter = OptimizationParameter.MODE,
        optimize_for_following_years: bool = False,
        iterations: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> Optional[OptimizationResult]:
        """
        Find the cheapest subset of mitigations.

        Ties on the statistic go to the smaller subset, then to the subset
        whose candidate indices sort first. Returns None when there are no
        candidates or no subset could be simulated.
        """
        parameter = OptimizationParameter(parameter)
        iterations = statistics.validate_iterations(
            settings.default_iterations if iterations is None else iterations
        )
        candidates = self.candidates(selected_mitigations)
        if not candidates:
            logger.info("optimizer_no_candidates", model_id=str(self._model.id))
            return None
        if len(candidates) > self._max_candidates:
            raise OptimizationError(
                f"{len(candidates)} candidates exceed the limit of {self._max_candidates} "
                f"({2 ** len(candidates) - 1} subsets)",
                error_code=ErrorCode.TOO_MANY_CANDIDATES,
            )

        n = len(candidates)
        total = (1 << n) - 1
        started = time.perf_counter()
        model = self._model
        enabled_before = model.enabled_state()
        ranges_before = model.capture_ranges()

        best: Optional[SimulationResult] = None
        best_order: tuple = ()
        best_subset: tuple[MitigationCost, ...] = ()
        evaluated = 0
        failed = 0
        completed = False

        logger.info(
            "optimizer_started",
            model_id=str(model.id),
            candidates=n,
            subsets=total,
            parameter=parameter.value,
            following_years=optimize_for_following_years,
        )

        try:
            for mask in range(1, total + 1):
                if cancel_event is not None and cancel_event.is_set():
                    raise OptimizationCancelledError(evaluated)

                indices = tuple(i for i in range(n) if mask >> i & 1)
                subset = tuple(candidates[i] for i in indices)
                model.set_enabled_state(subset)

                candidate = SimulationResult(keep_samples=False)
                candidate.costs = model.simulate_costs(iterations, container=candidate, rng=rng)
                evaluated += 1
                if candidate.costs is None:
                    failed += 1
                    continue

                order = (len(indices), indices)
                if (
                    candidate.is_better_than(best, parameter, optimize_for_following_years)
                    or (
                        not best.is_better_than(candidate, parameter, optimize_for_following_years)
                        and order < best_order
                    )
                ):
                    candidate.store_results(model)
                    best, best_order, best_subset = candidate, order, subset
            completed = True
        finally:
            model.restore_enabled_state(enabled_before)
            if completed and best is not None:
                best.apply(model)
            else:
                model.apply_ranges(ranges_before)

        elapsed = time.perf_counter() - started
        if best is None:
            logger.warning(
                "optimizer_no_feasible_subset",
                model_id=str(model.id),
                evaluated=evaluated,
                elapsed_s=round(elapsed, 3),
            )
            return None

        result = OptimizationResult(
            mitigations=best_subset,
            first_year=best.costs.first_year,
            following_years=best.costs.following_years,
            residual_risk=best.costs.residual_risk,
            parameter=parameter,
            optimize_for_following_years=optimize_for_following_years,
            statistic=best.statistic(parameter, optimize_for_following_years),
            evaluated_subsets=evaluated,
            failed_subsets=failed,
            snapshots=best.snapshots,
        )
        logger.info(
            "optimizer_completed",
            model_id=str(model.id),
            best=[m.name or str(m.id) for m in best_subset],
            statistic=round(result.statistic, 2),
            evaluated=evaluated,
            failed=failed,
            elapsed_s=round(elapsed, 3),
        )
        model.notify("on_optimization_completed", result)
        return result
