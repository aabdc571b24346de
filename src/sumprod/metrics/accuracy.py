"""
Ranking and scoring fidelity metrics: rank-error dispersion and log-scale
correlation, evaluated per (definition, regime, rule, slice).

rank_error_sd uses the sample standard deviation (ddof=1). Both statistics
need at least two slice members; smaller slices raise DegenerateSlice, which
the evaluator turns into a NaN cell.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..aggregation import Estimate
from ..ground_truth import GroundTruth
from ..invariant_runtime import DegenerateSlice, InvariantViolation, record_fallback
from .slices import PopulationSlice

TABLE_INDEX = ["definition", "regime", "rule", "slice"]
TABLE_COLUMNS = ["rank_error_sd", "log_correlation", "n_members"]


def rank_errors(true_ranks: np.ndarray, est_ranks: np.ndarray) -> np.ndarray:
    """Signed rank error per entity: true rank - estimated rank."""

    return np.asarray(true_ranks, dtype=float) - np.asarray(est_ranks, dtype=float)


def rank_error_sd(true_ranks: np.ndarray, est_ranks: np.ndarray) -> float:
    """Sample standard deviation of the rank error."""

    err = rank_errors(true_ranks, est_ranks)
    if err.size <= 1:
        raise DegenerateSlice("accuracy.rank_error_sd", "need at least two members", {"n": int(err.size)})
    return float(np.std(err, ddof=1))


def log_correlation(estimate: np.ndarray, true_rating: np.ndarray) -> float:
    """Pearson correlation of ln(estimate) and ln(true rating)."""

    x = np.log(np.asarray(estimate, dtype=float))
    y = np.log(np.asarray(true_rating, dtype=float))
    if x.shape != y.shape:
        raise ValueError("estimate and true_rating must have the same shape")
    if x.size <= 1:
        raise DegenerateSlice("accuracy.log_correlation", "need at least two members", {"n": int(x.size)})
    xc = x - x.mean()
    yc = y - y.mean()
    denom = np.sqrt(np.sum(xc * xc) * np.sum(yc * yc))
    if denom == 0.0:
        raise DegenerateSlice("accuracy.log_correlation", "constant series in slice", {"n": int(x.size)})
    r = float(np.sum(xc * yc) / denom)
    return min(max(r, -1.0), 1.0)


def _guarded(metric: str, fn, *args, cell: Dict) -> float:
    try:
        value = fn(*args)
    except DegenerateSlice as exc:
        record_fallback("accuracy.degenerate_slice", {"metric": metric, "reason": str(exc), **cell})
        logging.getLogger(__name__).warning("Degenerate slice for %s at %s; reporting NaN", metric, cell)
        return float("nan")
    if not np.isfinite(value):
        raise InvariantViolation("accuracy.finite", f"{metric} is not finite", {"value": value, **cell})
    return value


def evaluate(
    true_rating: np.ndarray,
    true_ranks: np.ndarray,
    estimate: Estimate,
    population_slice: PopulationSlice,
    cell: Optional[Dict] = None,
) -> Dict[str, float]:
    """Metrics for one estimate over one slice chosen by the true rating."""

    cell = dict(cell or {})
    members = population_slice.members(true_rating)
    return {
        "rank_error_sd": _guarded(
            "rank_error_sd", rank_error_sd, true_ranks[members], estimate.ranks[members], cell=cell
        ),
        "log_correlation": _guarded(
            "log_correlation", log_correlation, estimate.values[members], true_rating[members], cell=cell
        ),
        "n_members": int(members.size),
    }


def evaluation_table(
    truth: GroundTruth,
    estimates: Dict[Tuple[str, str], Estimate],
    slices: Iterable[PopulationSlice],
    logger: Optional[logging.Logger] = None,
) -> pd.DataFrame:
    """Every (definition, regime, rule, slice) cell as a MultiIndex DataFrame."""

    log = logger or logging.getLogger(__name__)
    slices = list(slices)
    rows: List[Dict] = []
    for definition in truth.definitions:
        true_rating = truth.ratings[definition]
        true_ranks = truth.ranks[definition]
        for (regime, rule), est in estimates.items():
            for sl in slices:
                cell = {"definition": definition, "regime": regime, "rule": rule, "slice": sl.name}
                metrics = evaluate(true_rating, true_ranks, est, sl, cell=cell)
                rows.append({**cell, **metrics})
    table = pd.DataFrame.from_records(rows, columns=TABLE_INDEX + TABLE_COLUMNS)
    table = table.set_index(TABLE_INDEX)
    log.info(
        "Evaluation table: cells=%d nan_cells=%d",
        len(table),
        int(table[["rank_error_sd", "log_correlation"]].isna().any(axis=1).sum()),
    )
    return table
