"""
Descending rankings with average ranks for ties.

Rank 1 is the largest value. Tied values share the mean of the rank
positions they occupy, so ranks may be fractional; rank errors computed from
them inherit that convention.
"""

from __future__ import annotations

import numpy as np


def rank_descending(values) -> np.ndarray:
    """Average ranks (1 = largest) for a 1-D series; returns a new float array."""

    vals = np.asarray(values, dtype=float)
    if vals.ndim != 1:
        raise ValueError("values must be 1-D")
    n = vals.size
    ranks = np.empty(n, dtype=float)
    if n == 0:
        return ranks
    order = np.argsort(-vals, kind="mergesort")
    sorted_vals = vals[order]
    # Boundaries of runs of equal values in sorted order.
    starts = np.flatnonzero(np.r_[True, sorted_vals[1:] != sorted_vals[:-1]])
    ends = np.r_[starts[1:], n]
    avg = (starts + 1 + ends) / 2.0
    ranks[order] = np.repeat(avg, ends - starts)
    return ranks


def top_members(values, fraction: float) -> np.ndarray:
    """Indices of the ceil(fraction * n) largest values, best first (stable on ties)."""

    vals = np.asarray(values, dtype=float)
    if not 0.0 < fraction <= 1.0:
        raise ValueError("fraction must be in (0, 1]")
    k = int(np.ceil(fraction * vals.size - 1e-9))
    order = np.argsort(-vals, kind="mergesort")
    return order[:k]
