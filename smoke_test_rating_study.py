"""
Smoke test for the rating study.

Validates artifact creation, schema columns, full cell coverage, and
determinism across repeated runs with identical seeds.
"""

from __future__ import annotations

import os
import sys
import tempfile

# Allow running from repo root without installation.
SRC_ROOT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from sumprod.experiments.runner import run_study, write_study_outputs
from sumprod.experiments.schema_contract import (
    validate_cell_coverage,
    validate_evaluation_csv,
    validate_summary_json,
)
from sumprod.experiments.study_config import StudyConfig


def main() -> None:
    cfg = StudyConfig(n_entities=3000, seed=13, scenario_name="smoke_sumprod")

    with tempfile.TemporaryDirectory() as out_a, tempfile.TemporaryDirectory() as out_b:
        paths = write_study_outputs(run_study(cfg), out_a)
        for path in paths.values():
            assert os.path.exists(path), f"Missing artifact: {path}"

        ok, errors = validate_evaluation_csv(paths["evaluation"])
        assert ok, "evaluation.csv schema errors:\n" + "\n".join(errors)
        ok, errors = validate_summary_json(paths["summary"])
        assert ok, "summary.json schema errors:\n" + "\n".join(errors)
        ok, errors = validate_cell_coverage(
            paths["evaluation"],
            definitions=cfg.definitions,
            regimes=[r.name for r in cfg.noise_regimes],
            rules=cfg.rules,
            slices=[s.name for s in cfg.slices],
        )
        assert ok, "evaluation.csv coverage errors:\n" + "\n".join(errors)

        # Determinism check: rerun and compare artifact contents.
        paths_b = write_study_outputs(run_study(cfg), out_b)
        for key in ["evaluation", "config_snapshot"]:
            assert read_text(paths[key]) == read_text(paths_b[key]), f"{key} differs across identical runs"

    print("Rating study smoke test passed.")


def read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


if __name__ == "__main__":
    main()
