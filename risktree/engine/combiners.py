"""
Elementwise combination of sample arrays.

Every combiner returns None when an input is missing or lengths disagree,
so a failure anywhere below a node propagates upward as "no samples".
"""

from typing import Optional, Sequence

import numpy as np


def _aligned(arrays: Sequence[Optional[np.ndarray]]) -> bool:
    if not arrays or any(a is None for a in arrays):
        return False
    length = len(arrays[0])
    return all(len(a) == length for a in arrays)


def product(left: Optional[np.ndarray], right: Optional[np.ndarray]) -> Optional[np.ndarray]:
    """a[i] * b[i]"""
    if not _aligned([left, right]):
        return None
    return left * right


def complement_product(
    left: Optional[np.ndarray],
    right: Optional[np.ndarray],
) -> Optional[np.ndarray]:
    """a[i] * (1 - b[i])"""
    if not _aligned([left, right]):
        return None
    return left * (1.0 - right)


def total(arrays: Sequence[Optional[np.ndarray]]) -> Optional[np.ndarray]:
    """Elementwise sum of one or more arrays."""
    if not _aligned(arrays):
        return None
    result = np.array(arrays[0], dtype=np.float64, copy=True)
    for array in arrays[1:]:
        result += array
    return result


def mitigate(
    samples: Optional[np.ndarray],
    effects: Sequence[Optional[np.ndarray]],
) -> Optional[np.ndarray]:
    """Apply each reduction in turn: s[i] *= (1 - e[i])."""
    if samples is None:
        return None
    if not effects:
        return samples.copy()
    if not _aligned([samples, *effects]):
        return None
    result = samples.copy()
    for effect in effects:
        result *= 1.0 - effect
    return result
