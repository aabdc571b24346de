"""
Schema contract validators for study artifacts.

Validators are pandas-free and return (ok, errors) tuples.
"""

from __future__ import annotations

import csv
import json
import math
from typing import Dict, Iterable, List, Tuple

REQUIRED_EVALUATION_COLUMNS = [
    "scenario_name",
    "seed",
    "definition",
    "regime",
    "rule",
    "slice",
    "rank_error_sd",
    "log_correlation",
    "n_members",
]

REQUIRED_SUMMARY_KEYS = [
    "evaluation",
    "invariants",
    "metadata",
    "note",
    "reporting_version",
]

REQUIRED_SUMMARY_METADATA_KEYS = ["scenario_name", "seed", "regimes", "rules", "definitions", "slices", "config_hash"]


def validate_evaluation_csv(path: str) -> Tuple[bool, List[str]]:
    rows, errors = _read_csv_rows(path)
    if errors:
        return False, errors
    header = rows[0].keys() if rows else []
    errors.extend(_missing_columns(header, REQUIRED_EVALUATION_COLUMNS))
    if errors:
        return False, errors
    if not rows:
        return False, [f"{path}: no rows found"]
    for idx, row in enumerate(rows):
        errors.extend(_require_nonempty(row, ["scenario_name", "definition", "regime", "rule", "slice"], path, idx))
        errors.extend(_require_int(row, ["seed", "n_members"], path, idx))
        # Empty metric cells are degenerate slices reported as missing.
        errors.extend(_require_float_optional(row, ["rank_error_sd"], path, idx))
        errors.extend(_require_correlation(row, path, idx))
    return len(errors) == 0, errors


def validate_cell_coverage(
    path: str,
    definitions: Iterable[str],
    regimes: Iterable[str],
    rules: Iterable[str],
    slices: Iterable[str],
) -> Tuple[bool, List[str]]:
    """Every (definition, regime, rule, slice) combination appears exactly once."""

    rows, errors = _read_csv_rows(path)
    if errors:
        return False, errors
    seen: Dict[Tuple[str, str, str, str], int] = {}
    for row in rows:
        key = (row.get("definition"), row.get("regime"), row.get("rule"), row.get("slice"))
        seen[key] = seen.get(key, 0) + 1
    for d in definitions:
        for g in regimes:
            for r in rules:
                for s in slices:
                    count = seen.get((d, g, r, s), 0)
                    if count != 1:
                        errors.append(f"{path}: cell ({d}, {g}, {r}, {s}) appears {count} times")
    return len(errors) == 0, errors


def validate_summary_json(path: str) -> Tuple[bool, List[str]]:
    errors: List[str] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as exc:
        return False, [f"{path}: failed to parse JSON: {exc}"]
    if not isinstance(payload, dict):
        return False, [f"{path}: summary.json must be a JSON object"]
    errors.extend(_missing_keys(payload, REQUIRED_SUMMARY_KEYS, path))
    if errors:
        return False, errors
    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        return False, [f"{path}: metadata must be an object"]
    errors.extend(_missing_keys(metadata, REQUIRED_SUMMARY_METADATA_KEYS, path + " metadata"))
    if not isinstance(payload.get("reporting_version"), str):
        errors.append(f"{path}: reporting_version must be a string")
    if not isinstance(payload.get("evaluation"), list) or not payload["evaluation"]:
        errors.append(f"{path}: evaluation must be a non-empty list")
    invariants = payload.get("invariants")
    if isinstance(invariants, dict) and invariants.get("n_failed", 0) != 0:
        errors.append(f"{path}: summary reports failed invariants")
    return len(errors) == 0, errors


def _read_csv_rows(path: str) -> Tuple[List[Dict[str, str]], List[str]]:
    errors: List[str] = []
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            rows = list(reader)
    except OSError as exc:
        return [], [f"{path}: failed to read CSV: {exc}"]
    if reader.fieldnames is None:
        errors.append(f"{path}: missing header row")
    return rows, errors


def _missing_columns(header, required: List[str]) -> List[str]:
    if not header:
        return ["missing CSV header"]
    return [f"missing column: {col}" for col in required if col not in header]


def _missing_keys(obj: Dict, required: List[str], path: str) -> List[str]:
    return [f"{path}: missing key '{k}'" for k in required if k not in obj]


def _require_nonempty(row: Dict[str, str], fields: List[str], path: str, idx: int) -> List[str]:
    errors: List[str] = []
    for field in fields:
        val = row.get(field)
        if val is None or str(val).strip() == "":
            errors.append(f"{path}: row {idx} missing or empty '{field}'")
    return errors


def _require_int(row: Dict[str, str], fields: List[str], path: str, idx: int) -> List[str]:
    errors: List[str] = []
    for field in fields:
        val = row.get(field)
        if val is None or str(val).strip() == "":
            errors.append(f"{path}: row {idx} missing int '{field}'")
            continue
        try:
            int(str(val).strip())
        except ValueError:
            errors.append(f"{path}: row {idx} invalid int '{field}'")
    return errors


def _require_float_optional(row: Dict[str, str], fields: List[str], path: str, idx: int) -> List[str]:
    errors: List[str] = []
    for field in fields:
        val = row.get(field)
        if val is None or str(val).strip() == "":
            continue
        try:
            parsed = float(str(val).strip())
        except ValueError:
            errors.append(f"{path}: row {idx} invalid float '{field}'")
            continue
        if not math.isfinite(parsed):
            errors.append(f"{path}: row {idx} non-finite '{field}'")
    return errors


def _require_correlation(row: Dict[str, str], path: str, idx: int) -> List[str]:
    errors = _require_float_optional(row, ["log_correlation"], path, idx)
    if errors:
        return errors
    val = row.get("log_correlation")
    if val is not None and str(val).strip() != "":
        r = float(str(val).strip())
        if r < -1.0 or r > 1.0:
            errors.append(f"{path}: row {idx} log_correlation out of [-1, 1]")
    return errors
