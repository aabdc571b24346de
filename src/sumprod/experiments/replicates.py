"""
Replicate harness: repeat the study across seeds and compare estimators.

Replicate i runs with seed base_seed + i. Per-replicate evaluation tables are
stacked, averaged per cell (NaN-safe), and two families of paired tests are
run across replicates on rank_error_sd:

  - rule:  product rule vs sum rule, per (definition, regime, slice)
  - noise: largest vs smallest constant-sd regime, per (definition, rule, slice)

p-values are Holm/Bonferroni corrected within each family.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..stats.tests import (
    bonferroni_correction,
    bootstrap_ci,
    format_p_value,
    holm_correction,
    paired_t_test,
)
from .runner import run_study
from .study_config import DEFAULT_BOOTSTRAP_SAMPLES, StudyConfig

TEST_COLUMNS = [
    "family",
    "definition",
    "regime",
    "rule",
    "slice",
    "compared",
    "baseline",
    "n_pairs",
    "diff_mean",
    "stat",
    "p_value",
    "p_value_str",
    "p_holm",
    "p_bonferroni",
    "ci_low",
    "ci_high",
    "better_if_negative",
]


@dataclass
class ReplicateResult:
    per_replicate: pd.DataFrame
    aggregated: pd.DataFrame
    tests: pd.DataFrame
    seeds: List[int]


def run_replicates(
    config: StudyConfig,
    n_replicates: int,
    base_seed: Optional[int] = None,
    logger: Optional[logging.Logger] = None,
) -> ReplicateResult:
    """Run `n_replicates` seeded studies and summarize them."""

    log = logger or logging.getLogger(__name__)
    if n_replicates < 1:
        raise ValueError("n_replicates must be >= 1")
    base = int(config.seed if base_seed is None else base_seed)
    seeds = [base + i for i in range(n_replicates)]

    frames = []
    for idx, seed in enumerate(seeds):
        result = run_study(config.with_seed(seed), logger=log)
        frame = result.evaluation.reset_index()
        frame.insert(0, "seed", seed)
        frame.insert(0, "replicate", idx)
        frames.append(frame)
        log.info("Replicate %d/%d done (seed=%d)", idx + 1, n_replicates, seed)
    stacked = pd.concat(frames, ignore_index=True)

    aggregated = aggregate_replicates(stacked)
    tests = pd.DataFrame.from_records(
        rule_comparisons(stacked) + noise_comparisons(stacked, config),
        columns=TEST_COLUMNS,
    )
    return ReplicateResult(per_replicate=stacked, aggregated=aggregated, tests=tests, seeds=seeds)


def aggregate_replicates(stacked: pd.DataFrame) -> pd.DataFrame:
    """Mean and sd across replicates per cell (NaN-safe)."""

    grouped = stacked.groupby(["definition", "regime", "rule", "slice"], sort=False)
    out = grouped.agg(
        rank_error_sd_mean=("rank_error_sd", "mean"),
        rank_error_sd_sd=("rank_error_sd", "std"),
        log_correlation_mean=("log_correlation", "mean"),
        log_correlation_sd=("log_correlation", "std"),
        n_replicates=("rank_error_sd", "count"),
    )
    return out


def _paired_row(family: str, key: Dict, compared: str, baseline: str, x: np.ndarray, y: np.ndarray) -> Dict:
    diff = x - y
    finite = diff[np.isfinite(diff)]
    t_stat, p_t = paired_t_test(x, y)
    ci_lo, ci_hi = bootstrap_ci(finite, n_boot=DEFAULT_BOOTSTRAP_SAMPLES)
    return {
        "family": family,
        **key,
        "compared": compared,
        "baseline": baseline,
        "n_pairs": int(finite.size),
        "diff_mean": float(finite.mean()) if finite.size else float("nan"),
        "stat": t_stat,
        "p_value": max(p_t, 1e-300),
        "p_value_str": format_p_value(p_t),
        "ci_low": ci_lo,
        "ci_high": ci_hi,
        "better_if_negative": True,
    }


def _apply_corrections(rows: List[Dict]) -> List[Dict]:
    p_vals = [r["p_value"] for r in rows]
    for row, p_h, p_b in zip(rows, holm_correction(p_vals), bonferroni_correction(p_vals)):
        row["p_holm"] = p_h
        row["p_bonferroni"] = p_b
    return rows


def _series(stacked: pd.DataFrame, **where) -> np.ndarray:
    mask = np.ones(len(stacked), dtype=bool)
    for col, val in where.items():
        mask &= (stacked[col] == val).to_numpy()
    return stacked.loc[mask].sort_values("replicate")["rank_error_sd"].to_numpy(dtype=float)


def rule_comparisons(stacked: pd.DataFrame) -> List[Dict]:
    """Product rule minus sum rule rank_error_sd, paired by replicate."""

    rules = set(stacked["rule"].unique())
    if not {"sum", "product"} <= rules:
        return []
    rows = []
    for (definition, regime, slice_name), _ in stacked.groupby(["definition", "regime", "slice"], sort=False):
        key = {"definition": definition, "regime": regime, "rule": "", "slice": slice_name}
        x = _series(stacked, definition=definition, regime=regime, slice=slice_name, rule="product")
        y = _series(stacked, definition=definition, regime=regime, slice=slice_name, rule="sum")
        rows.append(_paired_row("rule", key, "product", "sum", x, y))
    return _apply_corrections(rows)


def noise_comparisons(stacked: pd.DataFrame, config: StudyConfig) -> List[Dict]:
    """Largest minus smallest constant-sd regime rank_error_sd (expected >= 0)."""

    constants = sorted(
        (r for r in config.noise_regimes if r.kind == "constant"),
        key=lambda r: float(r.constant),
    )
    if len(constants) < 2:
        return []
    low, high = constants[0].name, constants[-1].name
    rows = []
    for (definition, rule, slice_name), _ in stacked.groupby(["definition", "rule", "slice"], sort=False):
        key = {"definition": definition, "regime": "", "rule": rule, "slice": slice_name}
        x = _series(stacked, definition=definition, rule=rule, slice=slice_name, regime=high)
        y = _series(stacked, definition=definition, rule=rule, slice=slice_name, regime=low)
        row = _paired_row("noise", key, high, low, x, y)
        row["better_if_negative"] = False
        rows.append(row)
    return _apply_corrections(rows)
