#!/usr/bin/env python
"""
CLI entrypoint for the sum-vs-product rating study.

Runs one seeded study (or a replicate sweep) from a YAML config and writes
artifacts under <out>/<scenario_name>/.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

# Allow running from repo root without installation.
SRC_ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from sumprod.experiments.replicates import run_replicates
from sumprod.experiments.runner import run_study, write_study_outputs
from sumprod.experiments.study_config import StudyConfig, load_study_config


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the sum-vs-product rating robustness study.")
    parser.add_argument("--config", default=None, help="Study config YAML (default: built-in reference values).")
    parser.add_argument("--seed", type=int, default=None, help="Override the configured seed.")
    parser.add_argument("--n_entities", type=int, default=None, help="Override the population size.")
    parser.add_argument("--out", default="results", help="Output directory (default: results).")
    parser.add_argument("--replicates", type=int, default=0, help="Also run this many seeded replicates.")
    return parser.parse_args()


def configure_logging(level: str) -> logging.Logger:
    log = logging.getLogger("sumprod")
    log.setLevel(getattr(logging, level, logging.INFO))
    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    if not log.handlers:
        log.addHandler(ch)
    return log


def main() -> None:
    args = parse_args()
    cfg = load_study_config(args.config) if args.config else StudyConfig()
    if args.seed is not None:
        cfg = cfg.with_seed(args.seed)
    if args.n_entities is not None:
        cfg.n_entities = int(args.n_entities)
    log = configure_logging(cfg.log_level)

    result = run_study(cfg, logger=log)
    paths = write_study_outputs(result, args.out)
    log.info("Artifacts written: %s", ", ".join(sorted(paths.values())))

    if args.replicates > 0:
        reps = run_replicates(cfg, args.replicates, logger=log)
        results_dir = os.path.dirname(paths["evaluation"])
        reps.aggregated.reset_index().to_csv(os.path.join(results_dir, "replicates_aggregated.csv"), index=False)
        reps.tests.to_csv(os.path.join(results_dir, "replicates_tests.csv"), index=False)
        log.info("Replicates written: n=%d seeds=%d..%d", len(reps.seeds), reps.seeds[0], reps.seeds[-1])


if __name__ == "__main__":
    main()
