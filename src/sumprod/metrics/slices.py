"""
Population slices selected by true rank.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

import numpy as np

from ..invariant_runtime import InvalidParameter
from ..ranking import top_members


@dataclass(frozen=True)
class PopulationSlice:
    """The best `fraction` of entities by true rating."""

    name: str
    fraction: float

    def __post_init__(self):
        if not 0.0 < self.fraction <= 1.0:
            raise InvalidParameter("slice.fraction", "slice fraction must be in (0, 1]", {"name": self.name, "fraction": self.fraction})

    def members(self, true_rating: np.ndarray) -> np.ndarray:
        """Member indices; always computed from the true rating, never an estimate."""

        return top_members(true_rating, self.fraction)


DEFAULT_SLICES: List[PopulationSlice] = [
    PopulationSlice("all", 1.0),
    PopulationSlice("top10", 0.10),
    PopulationSlice("top1", 0.01),
]


def slice_from_dict(cfg: Dict) -> PopulationSlice:
    return PopulationSlice(name=str(cfg["name"]), fraction=float(cfg["fraction"]))
