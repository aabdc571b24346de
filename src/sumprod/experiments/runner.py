"""
Study runner (synthetic, deterministic by seed).

Runs the full pipeline once:
  population -> ground truth -> noise (per regime) -> aggregation (per rule)
  -> evaluation table keyed by (definition, regime, rule, slice).

Every phase allocates new arrays and earlier-phase arrays are frozen
(read-only) so later phases cannot mutate them. Artifacts are optional and
written by write_study_outputs.
"""

from __future__ import annotations

import csv
import json
import logging
import math
import os
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from ..aggregation import Estimate, aggregate_all
from ..ground_truth import GroundTruth, compose_ground_truth
from ..invariant_runtime import (
    InvariantContext,
    reset_invariant_context,
    set_invariant_context,
    stable_config_hash,
)
from ..metrics.accuracy import TABLE_COLUMNS, TABLE_INDEX, evaluation_table
from ..noise import NoisyObservations, inject_all
from ..population import POPULATION_STREAM, attribute_names, generate_population, rng_for_stream
from .study_config import StudyConfig

REPORTING_VERSION = "sumprod_v1"

EVALUATION_COLUMNS = ["scenario_name", "seed"] + TABLE_INDEX + TABLE_COLUMNS


@dataclass
class StudyResult:
    """Evaluation table plus every per-entity series it was computed from."""

    config: StudyConfig
    true_matrix: np.ndarray
    truth: GroundTruth
    observations: NoisyObservations
    estimates: Dict[Tuple[str, str], Estimate]
    evaluation: pd.DataFrame
    invariant_summary: Dict
    elapsed_s: float = 0.0

    @property
    def scenario_name(self) -> str:
        return self.config.derived_scenario_name()

    def lookup(self, definition: str, regime: str, rule: str, slice_name: str) -> Dict[str, float]:
        row = self.evaluation.loc[(definition, regime, rule, slice_name)]
        return {
            "rank_error_sd": float(row["rank_error_sd"]),
            "log_correlation": float(row["log_correlation"]),
            "n_members": int(row["n_members"]),
        }

    def scatter_frame(self, definition: str, regime: str, rule: str, slice_name: str = "all") -> pd.DataFrame:
        """Per-entity log(estimate) vs log(true rating) for one slice, best first."""

        sl = next((s for s in self.config.slices if s.name == slice_name), None)
        if sl is None:
            raise KeyError(f"Unknown slice: {slice_name}")
        true_rating = self.truth.ratings[definition]
        est = self.estimates[(regime, rule)]
        members = sl.members(true_rating)
        return pd.DataFrame(
            {
                "entity": members,
                "true_rank": self.truth.ranks[definition][members],
                "estimated_rank": est.ranks[members],
                "log_true": np.log(true_rating[members]),
                "log_estimate": np.log(est.values[members]),
            }
        )

    def attribute_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.true_matrix, columns=attribute_names(self.true_matrix.shape[1]))


def _freeze(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


def run_study(config: StudyConfig, logger: Optional[logging.Logger] = None) -> StudyResult:
    """Run the pipeline once for `config.seed`."""

    log = logger or logging.getLogger(__name__)
    config.validate()
    seed = int(config.seed)
    scenario_name = config.derived_scenario_name()
    ctx = InvariantContext(
        scenario_name=scenario_name,
        run_seed=seed,
        config_hash=stable_config_hash(config.to_dict()),
    )
    token = set_invariant_context(ctx)
    run_start = time.time()
    try:
        log.info(
            "Study start (scenario=%s, seed=%d, n=%d, k=%d, regimes=%d)",
            scenario_name,
            seed,
            config.n_entities,
            config.n_attributes,
            len(config.noise_regimes),
        )
        population_rng = rng_for_stream(seed, POPULATION_STREAM)
        true_matrix = _freeze(generate_population(population_rng, config.population(), logger=log))
        truth = compose_ground_truth(
            true_matrix,
            mixed_weight=config.mixed_weight,
            definitions=config.definitions,
            logger=log,
        )
        for name in truth.definitions:
            _freeze(truth.ratings[name])
            _freeze(truth.ranks[name])

        observations = inject_all(seed, true_matrix, config.noise_regimes, logger=log)
        for _, matrix in observations.items():
            _freeze(matrix)

        estimates = aggregate_all(observations, rules=config.rules, logger=log)
        for est in estimates.values():
            _freeze(est.values)
            _freeze(est.ranks)

        table = evaluation_table(truth, estimates, config.slices, logger=log)
    finally:
        reset_invariant_context(token)

    elapsed = time.time() - run_start
    log.info("Study end: cells=%d elapsed=%.2fs", len(table), elapsed)
    return StudyResult(
        config=config,
        true_matrix=true_matrix,
        truth=truth,
        observations=observations,
        estimates=estimates,
        evaluation=table,
        invariant_summary={**ctx.summary(), "config_hash": ctx.config_hash},
        elapsed_s=elapsed,
    )


def evaluation_records(result: StudyResult) -> list:
    """Flat rows of the evaluation table with scenario metadata."""

    flat = result.evaluation.reset_index()
    flat.insert(0, "seed", int(result.config.seed))
    flat.insert(0, "scenario_name", result.scenario_name)
    return flat[EVALUATION_COLUMNS].to_dict(orient="records")


def write_study_outputs(result: StudyResult, out_dir: str) -> Dict[str, str]:
    """Persist evaluation.csv, summary.json and config_snapshot.json; return paths."""

    results_dir = os.path.join(out_dir, result.scenario_name)
    os.makedirs(results_dir, exist_ok=True)

    records = evaluation_records(result)
    eval_path = os.path.join(results_dir, "evaluation.csv")
    with open(eval_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(EVALUATION_COLUMNS)
        for rec in records:
            writer.writerow([_csv_value(rec[k]) for k in EVALUATION_COLUMNS])

    config_snapshot = result.config.to_dict()
    config_hash = _write_config_snapshot(results_dir, config_snapshot)

    summary = {
        "evaluation": records,
        "invariants": result.invariant_summary,
        "metadata": {
            "scenario_name": result.scenario_name,
            "seed": int(result.config.seed),
            "n_entities": int(result.config.n_entities),
            "n_attributes": int(result.config.n_attributes),
            "regimes": [r.name for r in result.observations.regimes],
            "rules": list(result.config.rules),
            "definitions": list(result.config.definitions),
            "slices": [s.name for s in result.config.slices],
            "config_hash": config_hash,
            "elapsed_s": result.elapsed_s,
        },
        "note": "rank_error_sd is the sample sd (ddof=1); ties use average ranks.",
        "reporting_version": REPORTING_VERSION,
    }
    summary_path = os.path.join(results_dir, "summary.json")
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(sanitize_for_json(summary), f, indent=2)

    return {
        "evaluation": eval_path,
        "summary": summary_path,
        "config_snapshot": os.path.join(results_dir, "config_snapshot.json"),
    }


def _csv_value(v):
    if isinstance(v, float) and math.isnan(v):
        return ""
    return v


def sanitize_for_json(obj):
    """Convert numpy scalars/arrays to JSON-serializable Python types."""

    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_for_json(v) for v in obj]
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        obj = float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.ndarray):
        return [sanitize_for_json(v) for v in obj.tolist()]
    if isinstance(obj, float) and (obj != obj):  # NaN check
        return None
    return obj


def _write_config_snapshot(results_dir: str, cfg: Dict) -> str:
    """Write config snapshot and return its hash."""

    cfg_clean = sanitize_for_json(cfg)
    snapshot_path = os.path.join(results_dir, "config_snapshot.json")
    with open(snapshot_path, "w", encoding="utf-8") as f:
        json.dump(cfg_clean, f, indent=2)
    return stable_config_hash(cfg_clean)
