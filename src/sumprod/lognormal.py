"""
Moment-matched lognormal parameterization.

Converts a desired linear-scale (mean, sd) into the (location, scale) of the
underlying normal in log space, so exp(Normal(location, scale)) has exactly
the requested linear mean and standard deviation:

    location = ln(m^2 / sqrt(s^2 + m^2))
    scale    = sqrt(ln(1 + s^2 / m^2))

Used both for drawing the latent population and for drawing noisy
observations centred on a true value; the result is always strictly positive.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .invariant_runtime import InvalidParameter


def lognormal_params(mean, sd) -> Tuple[np.ndarray, np.ndarray]:
    """Log-space (location, scale) for a linear-scale mean/sd; arrays broadcast."""

    m = np.asarray(mean, dtype=float)
    s = np.asarray(sd, dtype=float)
    if not (np.all(np.isfinite(m)) and np.all(m > 0.0)):
        raise InvalidParameter(
            "lognormal.mean",
            "linear-scale mean must be strictly positive and finite",
            data={"min": _safe_min(m)},
        )
    if not (np.all(np.isfinite(s)) and np.all(s > 0.0)):
        raise InvalidParameter(
            "lognormal.sd",
            "linear-scale sd must be strictly positive and finite",
            data={"min": _safe_min(s)},
        )
    ratio = (s / m) ** 2
    location = np.log(m) - 0.5 * np.log1p(ratio)
    scale = np.sqrt(np.log1p(ratio))
    return location, scale


def sample_lognormal(rng: np.random.Generator, mean, sd, size=None) -> np.ndarray:
    """Draw moment-matched lognormal variates with linear mean `mean` and sd `sd`."""

    location, scale = lognormal_params(mean, sd)
    return rng.lognormal(mean=location, sigma=scale, size=size)


def _safe_min(arr: np.ndarray) -> float:
    if arr.size == 0 or np.all(np.isnan(arr)):
        return float("nan")
    return float(np.nanmin(arr))
