"""
Paired statistical comparisons across replicate runs (paired by seed).
"""

from __future__ import annotations

import math
from typing import Iterable, List, Tuple

import numpy as np


def paired_t_test(x: Iterable[float], y: Iterable[float]) -> Tuple[float, float]:
    """Paired t-test using normal approximation for p-value; NaN pairs dropped."""

    x = np.asarray(list(x), dtype=float)
    y = np.asarray(list(y), dtype=float)
    if x.shape != y.shape:
        raise ValueError("x and y must have the same shape")
    diff = x - y
    diff = diff[np.isfinite(diff)]
    n = diff.size
    if n < 2:
        return 0.0, 1.0
    mean = diff.mean()
    std = diff.std(ddof=1)
    if std == 0.0:
        return 0.0, 1.0
    t_stat = mean / (std / math.sqrt(n))
    p = 2.0 * (1.0 - normal_cdf(abs(t_stat)))
    return float(t_stat), float(p)


def bootstrap_ci(diff: Iterable[float], n_boot: int = 1000, alpha: float = 0.05, seed: int = 0) -> Tuple[float, float]:
    """Bootstrap CI for mean difference."""

    diff = np.asarray(list(diff), dtype=float)
    diff = diff[np.isfinite(diff)]
    if diff.size == 0:
        return float("nan"), float("nan")
    rng = np.random.default_rng(seed)
    idx = rng.integers(0, diff.size, size=(n_boot, diff.size))
    means = diff[idx].mean(axis=1)
    lo = float(np.quantile(means, alpha / 2.0))
    hi = float(np.quantile(means, 1.0 - alpha / 2.0))
    return lo, hi


def holm_correction(p_values: List[float]) -> List[float]:
    """Holm step-down correction (monotone)."""

    m = len(p_values)
    indexed = sorted(enumerate(p_values), key=lambda kv: kv[1])
    corrected = [0.0] * m
    running = 0.0
    for i, (idx, p) in enumerate(indexed):
        running = max(running, min((m - i) * p, 1.0))
        corrected[idx] = running
    return corrected


def bonferroni_correction(p_values: List[float]) -> List[float]:
    """Bonferroni correction."""

    m = len(p_values)
    return [min(p * m, 1.0) for p in p_values]


def normal_cdf(x: float) -> float:
    """Standard normal CDF."""

    return 0.5 * (1.0 + math.erf(x / math.sqrt(2.0)))


def format_p_value(p: float) -> str:
    """Format p-values to avoid zeros and improve readability."""

    p_safe = max(float(p), 1e-300)
    return f"{p_safe:.3e}"
