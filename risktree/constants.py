"""
RiskTree constants.

Simulation bounds, distribution shape parameters and domain limits shared by
the engine and the model aggregate.
"""

import numpy as np

# ── Iterations ───────────────────────────────────────────────────────────

MIN_ITERATIONS: int = 10_000
MAX_ITERATIONS: int = 10_485_760  # 10 Mi samples
DEFAULT_ITERATIONS: int = 100_000

# ── Percentiles ──────────────────────────────────────────────────────────

DEFAULT_MIN_PERCENTILE: float = 10.0
DEFAULT_MAX_PERCENTILE: float = 90.0

# ── Domains ──────────────────────────────────────────────────────────────

MAX_MONEY: float = float(np.finfo(np.float64).max)
MAX_FREQUENCY: float = 525_600.0  # once a minute, for a year
MAX_PERCENTAGE: float = 1.0

# ── Distribution shape ───────────────────────────────────────────────────

PERT_LAMBDA_LOW: float = 4.0
PERT_LAMBDA_MODERATE: float = 20.0
PERT_LAMBDA_HIGH: float = 160.0

# ── Summary ──────────────────────────────────────────────────────────────

MODE_BIN_THRESHOLD: int = 10_000  # below: 1% of n bins, otherwise 0.1%
KURTOSIS_LOW_THRESHOLD: float = -0.5
KURTOSIS_MODERATE_THRESHOLD: float = 1.5

# ── Persistence ──────────────────────────────────────────────────────────

SCHEMA_VERSION: int = 1
