"""
Ground-truth composer: true rating definitions and their rankings.

Every definition is computed from the same latent matrix so that comparisons
between definitions are made on an identical population.

Definitions:
  - product: product of all K attributes.
  - mixed:   product of the first ceil(K/2) attributes plus weight times the
             product of the remaining attributes (empty product = 1).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

import numpy as np

from .invariant_runtime import require_positive_finite
from .ranking import rank_descending

DEFAULT_MIXED_WEIGHT = 5.0

TrueRatingFn = Callable[[np.ndarray], np.ndarray]


def product_rating(matrix: np.ndarray) -> np.ndarray:
    """Row-wise product of all attributes."""

    return np.prod(matrix, axis=1)


def mixed_rating(matrix: np.ndarray, weight: float = DEFAULT_MIXED_WEIGHT) -> np.ndarray:
    """Sum of two sub-products; the trailing one is scaled by `weight`."""

    if weight <= 0.0:
        raise ValueError("mixed weight must be positive")
    split = int(np.ceil(matrix.shape[1] / 2.0))
    head = np.prod(matrix[:, :split], axis=1)
    tail = np.prod(matrix[:, split:], axis=1)
    return head + weight * tail


def build_definitions(mixed_weight: float = DEFAULT_MIXED_WEIGHT) -> Dict[str, TrueRatingFn]:
    """Registered true-rating definitions keyed by name."""

    return {
        "product": product_rating,
        "mixed": lambda m: mixed_rating(m, mixed_weight),
    }


@dataclass(frozen=True)
class GroundTruth:
    """True ratings and rankings per definition name."""

    ratings: Dict[str, np.ndarray]
    ranks: Dict[str, np.ndarray]

    @property
    def definitions(self) -> list:
        return list(self.ratings.keys())


def compose_ground_truth(
    matrix: np.ndarray,
    mixed_weight: float = DEFAULT_MIXED_WEIGHT,
    definitions: Optional[Iterable[str]] = None,
    logger: Optional[logging.Logger] = None,
) -> GroundTruth:
    """Compute true ratings and average-tie descending ranks for each definition."""

    log = logger or logging.getLogger(__name__)
    registry = build_definitions(mixed_weight)
    names = list(definitions) if definitions is not None else list(registry.keys())
    ratings: Dict[str, np.ndarray] = {}
    ranks: Dict[str, np.ndarray] = {}
    for name in names:
        if name not in registry:
            raise KeyError(f"Unknown true rating definition: {name}")
        rating = registry[name](matrix)
        require_positive_finite(rating, f"ground_truth.{name}.positive", f"true rating '{name}'")
        ratings[name] = rating
        ranks[name] = rank_descending(rating)
        log.debug("True rating '%s': min=%.4g median=%.4g max=%.4g", name, rating.min(), np.median(rating), rating.max())
    return GroundTruth(ratings=ratings, ranks=ranks)
