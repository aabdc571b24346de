"""
Noise injector for latent attributes.

A NoiseRegime maps a true attribute value v to a linear-scale noise sd:

  - inverse:  sd = 1 / v
  - sqrt:     sd = sqrt(v)          (variance proportional to v)
  - constant: sd = c

Each observation is a single moment-matched lognormal draw with linear mean v
and linear sd sd(v), so observations stay strictly positive. Regimes are
applied independently to the full true matrix (never layered), each with its
own random stream keyed by (seed, crc32 of the regime name), so neither the
processing order nor the order of regimes in the config changes any draw.
"""

from __future__ import annotations

import logging
import zlib
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from .invariant_runtime import InvalidParameter, require_positive_finite
from .lognormal import sample_lognormal
from .population import NOISE_STREAM, rng_for_stream

REGIME_KINDS = ("inverse", "sqrt", "constant")


@dataclass(frozen=True)
class NoiseRegime:
    """Named rule from true value to linear-scale noise sd."""

    name: str
    kind: str
    constant: Optional[float] = None

    def __post_init__(self):
        if self.kind not in REGIME_KINDS:
            raise InvalidParameter("noise.kind", f"unknown noise regime kind '{self.kind}'", {"name": self.name})
        if self.kind == "constant":
            if self.constant is None or not np.isfinite(self.constant) or self.constant <= 0.0:
                raise InvalidParameter(
                    "noise.constant",
                    "constant regimes need a positive finite sd",
                    {"name": self.name, "constant": self.constant},
                )

    def sd(self, true_values) -> np.ndarray:
        v = np.asarray(true_values, dtype=float)
        if self.kind == "inverse":
            return 1.0 / v
        if self.kind == "sqrt":
            return np.sqrt(v)
        return np.full_like(v, float(self.constant))

    def to_dict(self) -> Dict:
        out = {"name": self.name, "kind": self.kind}
        if self.constant is not None:
            out["constant"] = self.constant
        return out


def constant_regime(sd: float) -> NoiseRegime:
    return NoiseRegime(name=f"constant-{sd:g}", kind="constant", constant=float(sd))


DEFAULT_CONSTANT_SDS = (0.125, 0.25, 1.0)

DEFAULT_REGIMES: List[NoiseRegime] = [
    NoiseRegime(name="inverse-proportional", kind="inverse"),
    NoiseRegime(name="sqrt-proportional", kind="sqrt"),
] + [constant_regime(sd) for sd in DEFAULT_CONSTANT_SDS]


def regime_from_dict(cfg: Dict) -> NoiseRegime:
    """Build a regime from a config mapping ({name?, kind, constant?})."""

    kind = str(cfg.get("kind", ""))
    constant = cfg.get("constant")
    constant = float(constant) if constant is not None else None
    if "name" in cfg:
        return NoiseRegime(name=str(cfg["name"]), kind=kind, constant=constant)
    if kind == "constant":
        if constant is None:
            raise InvalidParameter("noise.constant", "constant regimes need a positive finite sd", {"cfg": cfg})
        return constant_regime(constant)
    return NoiseRegime(name=f"{kind}-proportional", kind=kind)


class NoisyObservations:
    """Noisy matrices keyed by regime name, addressable per (regime, attribute)."""

    def __init__(self, matrices: Dict[str, np.ndarray], regimes: Sequence[NoiseRegime]):
        self._matrices = dict(matrices)
        self.regimes = list(regimes)

    def __getitem__(self, regime_name: str) -> np.ndarray:
        return self._matrices[regime_name]

    def __contains__(self, regime_name: str) -> bool:
        return regime_name in self._matrices

    def __len__(self) -> int:
        return len(self._matrices)

    def keys(self) -> List[str]:
        return list(self._matrices.keys())

    def items(self):
        return self._matrices.items()

    def observation(self, regime_name: str, attribute: int) -> np.ndarray:
        """Observations of one attribute under one regime, one per entity."""

        return self._matrices[regime_name][:, attribute]


def regime_rng(seed: int, regime: NoiseRegime) -> np.random.Generator:
    """Generator for one regime, independent of every other regime's stream."""

    return rng_for_stream(seed, NOISE_STREAM, zlib.crc32(regime.name.encode("utf-8")))


def inject_noise(
    rng: np.random.Generator,
    true_matrix: np.ndarray,
    regime: NoiseRegime,
    logger: Optional[logging.Logger] = None,
) -> np.ndarray:
    """One noisy observation per cell, centred on the true value."""

    log = logger or logging.getLogger(__name__)
    require_positive_finite(true_matrix, "noise.input_positive", "true attribute matrix", error_cls=InvalidParameter)
    sd = regime.sd(true_matrix)
    noisy = sample_lognormal(rng, true_matrix, sd)
    require_positive_finite(noisy, f"noise.{regime.name}.positive", f"noisy matrix '{regime.name}'")
    log.debug(
        "Noise '%s': mean_sd=%.4g mean_abs_rel_err=%.4g",
        regime.name,
        float(sd.mean()),
        float(np.mean(np.abs(noisy - true_matrix) / true_matrix)),
    )
    return noisy


def inject_all(
    seed: int,
    true_matrix: np.ndarray,
    regimes: Iterable[NoiseRegime],
    logger: Optional[logging.Logger] = None,
) -> NoisyObservations:
    """Apply every regime to the full true matrix with its own keyed stream."""

    log = logger or logging.getLogger(__name__)
    regimes = list(regimes)
    names = [r.name for r in regimes]
    if len(set(names)) != len(names):
        raise InvalidParameter("noise.unique_names", "noise regime names must be unique", {"names": names})
    matrices: Dict[str, np.ndarray] = {}
    for regime in regimes:
        rng = regime_rng(seed, regime)
        matrices[regime.name] = inject_noise(rng, true_matrix, regime, logger=log)
    log.info("Noise injected: regimes=%s shape=%s", ",".join(names), true_matrix.shape)
    return NoisyObservations(matrices, regimes)
