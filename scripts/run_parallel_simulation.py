"""
Parallel Simulation — independent models on separate threads.

Builds N copies of a small FAIR model (two risks, three mitigations),
simulates and optimizes each one on its own worker thread, and prints a
summary. Models share nothing, so no locking is needed beyond the
registry.

Usage:
    python scripts/run_parallel_simulation.py --models 8 --iterations 100000
"""

import argparse
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed

import structlog

sys.path.insert(0, ".")

from risktree.engine.enums import Confidence, NodeKind  # noqa: E402
from risktree.logging_config import configure_logging  # noqa: E402
from risktree.model import RiskModel  # noqa: E402
from risktree.services.registry import ModelRegistry  # noqa: E402

logger = structlog.get_logger(__name__)


def build_model(registry: ModelRegistry, index: int) -> RiskModel:
    model = registry.create(f"Parallel model {index}")

    breach = model.add_risk("Customer data breach")
    lef = breach.add_child(NodeKind.LOSS_EVENT_FREQUENCY)
    lef.set_range(0.1, 0.5, 3, Confidence.MODERATE)
    lm = breach.add_child(NodeKind.LOSS_MAGNITUDE)
    primary = lm.add_child(NodeKind.PRIMARY_LOSS, "Response")
    primary.set_range(50_000, 200_000, 1_500_000, Confidence.MODERATE)
    secondary = lm.add_child(NodeKind.SECONDARY_RISK, "Fines")
    secondary.add_child(NodeKind.SECONDARY_LOSS_EVENT_FREQUENCY).set_range(0.1, 0.3, 0.6, Confidence.LOW)
    secondary.add_child(NodeKind.SECONDARY_LOSS_MAGNITUDE).set_range(100_000, 400_000, 4_000_000, Confidence.LOW)

    outage = model.add_risk("Service outage")
    outage_lef = outage.add_child(NodeKind.LOSS_EVENT_FREQUENCY)
    tef = outage_lef.add_child(NodeKind.THREAT_EVENT_FREQUENCY)
    tef.add_child(NodeKind.CONTACT_FREQUENCY).set_range(2, 12, 50, Confidence.MODERATE)
    tef.add_child(NodeKind.PROBABILITY_OF_ACTION).set_range(0.2, 0.4, 0.7, Confidence.MODERATE)
    vulnerability = outage_lef.add_child(NodeKind.VULNERABILITY)
    vulnerability.add_child(NodeKind.THREAT_CAPABILITY).set_range(0.3, 0.6, 0.9, Confidence.MODERATE)
    vulnerability.add_child(NodeKind.RESISTANCE_STRENGTH).set_range(0.2, 0.5, 0.8, Confidence.MODERATE)
    outage.add_child(NodeKind.LOSS_MAGNITUDE).set_range(10_000, 40_000, 250_000, Confidence.HIGH)

    for name, cost, effect in (
        ("MFA", (5_000, 10_000, 20_000), (0.3, 0.5, 0.7)),
        ("EDR", (20_000, 35_000, 60_000), (0.2, 0.4, 0.6)),
        ("Redundant site", (80_000, 120_000, 200_000), (0.5, 0.7, 0.9)),
    ):
        mitigation = model.add_mitigation(name)
        mitigation.set_range(*cost, Confidence.MODERATE)
        mitigation.set_operation_costs(cost[0] / 5, cost[1] / 5, cost[2] / 5, Confidence.MODERATE)
        for risk in model.risks:
            risk.apply_mitigation(mitigation).set_range(*effect, Confidence.MODERATE)

    return model


def run_one(model: RiskModel, iterations: int) -> dict:
    started = time.perf_counter()
    baseline = model.simulate(iterations)
    best = model.optimize_mitigations(iterations=iterations)
    return {
        "model": model.name,
        "baseline_mode": baseline.mode if baseline else None,
        "best": [m.name for m in best.mitigations] if best else [],
        "first_year_mode": best.first_year.mode if best else None,
        "elapsed_s": round(time.perf_counter() - started, 2),
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Simulate independent risk models in parallel")
    parser.add_argument("--models", type=int, default=8, help="Number of independent models")
    parser.add_argument("--iterations", type=int, default=100_000, help="Samples per simulation")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads (default: one per model)")
    parser.add_argument("--log-format", default=None, help="console or json")
    args = parser.parse_args()

    configure_logging(log_format=args.log_format)
    registry = ModelRegistry()
    models = [build_model(registry, i) for i in range(args.models)]

    started = time.perf_counter()
    failures = 0
    with ThreadPoolExecutor(max_workers=args.workers or args.models) as pool:
        futures = {pool.submit(run_one, model, args.iterations): model for model in models}
        for future in as_completed(futures):
            model = futures[future]
            try:
                summary = future.result()
            except Exception as e:
                failures += 1
                logger.error("parallel_run_failed", model_id=str(model.id), error=str(e), exc_info=True)
                continue
            print(
                f"  {summary['model']}: baseline mode {summary['baseline_mode']:,.0f}, "
                f"best {summary['best']} first-year mode {summary['first_year_mode']:,.0f} "
                f"({summary['elapsed_s']}s)"
            )
            registry.dispose(model.id)

    print(f"\n{args.models} models in {time.perf_counter() - started:.1f}s, {failures} failed")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
