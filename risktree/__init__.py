"""
RiskTree — quantitative risk trees.

FAIR-style decomposition of a risk into frequency and magnitude factors,
Monte Carlo propagation of three-point estimates, and a power-set search
for the cost-optimal set of mitigations.
"""

__version__ = "1.0.0"
