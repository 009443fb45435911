"""
RiskTree engine — distributions, statistics and the computation tree.

Components:
- enums: Confidence, RangeType, RangeState, NodeKind and node attributes
- statistics: PERT fitting, sampling and sample summaries
- range: three-point estimate with calculated state
- combiners: elementwise sample combination
- taxonomy: per-kind composition and combination rules
- node: tree node and simulation protocol
"""

from risktree.engine import kinds  # noqa: F401  registers the node classes
