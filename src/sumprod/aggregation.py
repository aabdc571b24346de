"""
Combination rules applied to noisy attribute observations.

Each (noise regime, rule) pair yields an independent Estimate holding the
per-entity scalar estimate and its descending average-tie ranking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

import numpy as np

from .invariant_runtime import require_positive_finite
from .noise import NoisyObservations
from .ranking import rank_descending

CombinationRule = Callable[[np.ndarray], np.ndarray]

COMBINATION_RULES: Dict[str, CombinationRule] = {
    "sum": lambda m: np.sum(m, axis=1),
    "product": lambda m: np.prod(m, axis=1),
}


@dataclass(frozen=True)
class Estimate:
    regime: str
    rule: str
    values: np.ndarray
    ranks: np.ndarray


def get_rule(name: str) -> CombinationRule:
    if name not in COMBINATION_RULES:
        raise KeyError(f"Unknown combination rule: {name}")
    return COMBINATION_RULES[name]


def aggregate(noisy_matrix: np.ndarray, rule: str, regime: str = "") -> Estimate:
    """Row-wise combination of one noisy matrix plus its ranking."""

    values = get_rule(rule)(noisy_matrix)
    require_positive_finite(values, f"aggregate.{regime}.{rule}.positive", f"estimate '{regime}/{rule}'")
    return Estimate(regime=regime, rule=rule, values=values, ranks=rank_descending(values))


def aggregate_all(
    observations: NoisyObservations,
    rules: Iterable[str] = ("sum", "product"),
    logger: Optional[logging.Logger] = None,
) -> Dict[Tuple[str, str], Estimate]:
    """Estimates for every (regime, rule) pair, keyed by that pair."""

    log = logger or logging.getLogger(__name__)
    rules = list(rules)
    estimates: Dict[Tuple[str, str], Estimate] = {}
    for regime_name, matrix in observations.items():
        for rule in rules:
            estimates[(regime_name, rule)] = aggregate(matrix, rule, regime=regime_name)
    log.info("Aggregated %d (regime, rule) estimates", len(estimates))
    return estimates
