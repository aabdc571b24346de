"""
Runtime invariant enforcement and fallback logging for the rating study.

Enforces fail-closed semantics: any invariant violation raises
InvariantViolation (or a subclass) immediately. When a context is active,
pass/fail status and recovered fallbacks (degenerate slices) are recorded so
the runner can summarize them next to the evaluation table.
"""

from __future__ import annotations

import hashlib
import json
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np


class InvariantViolation(RuntimeError):
    """Raised when a study invariant fails."""

    def __init__(self, invariant_id: str, message: str, data: Optional[Dict[str, Any]] = None):
        self.invariant_id = invariant_id
        self.data = data or {}
        super().__init__(f"[InvariantViolation:{invariant_id}] {message} | data={self.data}")


class InvalidParameter(InvariantViolation, ValueError):
    """Non-positive or non-finite parameter; indicates a configuration bug."""


class DegenerateSlice(InvariantViolation):
    """A population slice too small (or too flat) for the requested statistic."""


@dataclass
class InvariantRecord:
    invariant_id: str
    status: str  # "pass" or "fail"
    detail: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FallbackRecord:
    fallback_id: str
    detail: Dict[str, Any]


@dataclass
class InvariantContext:
    """Holds per-run invariant and fallback logs."""

    scenario_name: Optional[str]
    run_seed: Optional[int]
    config_hash: Optional[str] = None
    invariant_log: list = field(default_factory=list)
    fallback_log: list = field(default_factory=list)

    def record_invariant(self, rec: InvariantRecord) -> None:
        self.invariant_log.append(rec)

    def record_fallback(self, rec: FallbackRecord) -> None:
        self.fallback_log.append(rec)

    def summary(self) -> Dict[str, Any]:
        n_fail = sum(1 for r in self.invariant_log if r.status == "fail")
        return {
            "n_checks": len(self.invariant_log),
            "n_failed": n_fail,
            "n_fallbacks": len(self.fallback_log),
            "fallbacks": [{"fallback_id": f.fallback_id, **f.detail} for f in self.fallback_log],
        }


_ctx: ContextVar[Optional[InvariantContext]] = ContextVar("invariant_ctx", default=None)


def set_invariant_context(ctx: Optional[InvariantContext]):
    return _ctx.set(ctx)


def reset_invariant_context(token) -> None:
    _ctx.reset(token)


def current_context() -> Optional[InvariantContext]:
    return _ctx.get()


def _build_data(extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    ctx = current_context()
    data = dict(extra or {})
    if ctx:
        data.setdefault("scenario_name", ctx.scenario_name)
        data.setdefault("run_seed", ctx.run_seed)
    return data


def require_invariant(
    condition: bool,
    invariant_id: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    error_cls: type = InvariantViolation,
) -> None:
    """Assert an invariant, record status, and fail-closed on violation."""

    ctx = current_context()
    payload = _build_data(data)
    status = "pass" if condition else "fail"
    if ctx:
        ctx.record_invariant(
            InvariantRecord(invariant_id=invariant_id, status=status, detail=message, data=payload)
        )
    if not condition:
        raise error_cls(invariant_id, message, data=payload)


def require_positive_finite(values, invariant_id: str, what: str, error_cls: type = InvariantViolation) -> None:
    """Phase-boundary check: every value strictly positive and finite."""

    arr = np.asarray(values, dtype=float)
    finite = np.isfinite(arr)
    ok = bool(finite.all() and (arr > 0.0).all())
    data: Dict[str, Any] = {"what": what, "size": int(arr.size)}
    if not ok:
        data["n_nonfinite"] = int((~finite).sum())
        data["n_nonpositive"] = int((arr[finite] <= 0.0).sum())
    require_invariant(ok, invariant_id, f"{what} must be strictly positive and finite", data=data, error_cls=error_cls)


def record_fallback(fallback_id: str, detail: Dict[str, Any]) -> None:
    """Log a locally recovered condition (e.g. NaN for a degenerate slice)."""

    ctx = current_context()
    if ctx:
        ctx.record_fallback(FallbackRecord(fallback_id=fallback_id, detail=_build_data(detail)))


def stable_config_hash(cfg: Dict) -> str:
    """Deterministic hash for config snapshots."""

    payload = json.dumps(cfg, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()
