from __future__ import annotations

"""
simulate.sampling
=================

Risk sampling for the two strata of a trial.

Modes:
- independent: all four risks uniform on [lower, upper].
- tent: each stratum's control risk c is uniform on [lower, upper]; its
  treatment risk has the tent density peaking at c, whose CDF is

      F(r | c) = (r - L)^2 / ((c - L)(U - L))          for L <= r <= c
      F(r | c) = 1 - (U - r)^2 / ((U - c)(U - L))      for c <  r <= U

  and is inverted by bisection.

Bisection policy:
- start at the midpoint of [L, U] with step (U - L) / 4, halve the step each
  iteration, stop once the step is <= 1 / resolution.
- an exact CDF hit returns immediately.
- the result is within 2 * terminal_step(...) of the exact quantile.
"""

from typing import Any, Optional, Tuple, Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


def rng_for_batch(seed: int, batch_index: int) -> np.random.Generator:
    """
    Stable-per-batch RNG keyed by (seed, batch_index).

    Tallies do not depend on how batches are spread over workers.
    """
    if not all(isinstance(x, int) and not isinstance(x, bool) for x in (seed, batch_index)):
        raise TypeError("seed/batch_index must both be ints.")
    ss = np.random.SeedSequence([seed, batch_index])
    return np.random.default_rng(ss)


def _check_rng(rng: Any) -> np.random.Generator:
    if not isinstance(rng, np.random.Generator):
        raise TypeError(f"rng must be a numpy.random.Generator, got {type(rng).__name__}.")
    return rng


def uniform_risk(
    rng: np.random.Generator,
    lower: float,
    upper: float,
    size: Optional[int] = None,
) -> ArrayLike:
    _check_rng(rng)
    return lower + (upper - lower) * rng.random(size)


def tent_cdf(risk: ArrayLike, control_risk: ArrayLike, lower: float, upper: float) -> ArrayLike:
    r = np.asarray(risk, dtype=np.float64)
    c = np.asarray(control_risk, dtype=np.float64)
    span = float(upper) - float(lower)

    with np.errstate(divide="ignore", invalid="ignore"):
        left = (r - lower) ** 2 / ((c - lower) * span)
        right = 1.0 - (upper - r) ** 2 / ((upper - c) * span)
    out = np.where(r <= c, left, right)
    out = np.where(r <= lower, 0.0, out)
    out = np.where(r >= upper, 1.0, out)
    return float(out) if out.ndim == 0 else out


def terminal_step(lower: float, upper: float, resolution: int) -> float:
    """First step size that fails the bisection loop test (<= 1 / resolution)."""
    if int(resolution) <= 0:
        raise ValueError(f"resolution must be positive, got {resolution!r}")
    step = (float(upper) - float(lower)) / 4.0
    threshold = 1.0 / float(resolution)
    while step > threshold:
        step /= 2.0
    return step


def invert_tent_cdf(
    u: ArrayLike,
    control_risk: ArrayLike,
    lower: float,
    upper: float,
    resolution: int,
) -> ArrayLike:
    """Approximate tent quantile at probability `u` by bisection (vectorised)."""
    if int(resolution) <= 0:
        raise ValueError(f"resolution must be positive, got {resolution!r}")
    u_arr, c_arr = np.broadcast_arrays(
        np.asarray(u, dtype=np.float64), np.asarray(control_risk, dtype=np.float64)
    )
    span = float(upper) - float(lower)
    threshold = 1.0 / float(resolution)

    risk = np.full(u_arr.shape, float(lower) + span / 2.0)
    done = np.zeros(u_arr.shape, dtype=bool)
    step = span / 4.0
    while step > threshold:
        cdf = tent_cdf(risk, c_arr, lower, upper)
        done |= cdf == u_arr
        over = cdf > u_arr
        risk = np.where(done, risk, np.where(over, risk - step, risk + step))
        step /= 2.0

    return float(risk) if risk.ndim == 0 else risk


def tent_risk(
    rng: np.random.Generator,
    control_risk: ArrayLike,
    lower: float,
    upper: float,
    resolution: int,
    size: Optional[int] = None,
) -> ArrayLike:
    _check_rng(rng)
    return invert_tent_cdf(rng.random(size), control_risk, lower, upper, resolution)


def draw_risks(
    rng: np.random.Generator,
    size: int,
    *,
    lower: float,
    upper: float,
    tent_mode: bool,
    resolution: int,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Draw (p1, p2, p3, p4) for `size` trials.

    Stratum 1 is (control=p1, treatment=p2); stratum 2 is (control=p3, treatment=p4).
    """
    _check_rng(rng)
    if isinstance(size, bool) or not isinstance(size, (int, np.integer)) or int(size) <= 0:
        raise ValueError(f"size must be a positive int, got {size!r}")
    n = int(size)

    if tent_mode:
        p1 = uniform_risk(rng, lower, upper, n)
        p2 = tent_risk(rng, p1, lower, upper, resolution, n)
        p3 = uniform_risk(rng, lower, upper, n)
        p4 = tent_risk(rng, p3, lower, upper, resolution, n)
    else:
        p1 = uniform_risk(rng, lower, upper, n)
        p2 = uniform_risk(rng, lower, upper, n)
        p3 = uniform_risk(rng, lower, upper, n)
        p4 = uniform_risk(rng, lower, upper, n)
    return p1, p2, p3, p4


__all__ = [
    "draw_risks",
    "invert_tent_cdf",
    "rng_for_batch",
    "tent_cdf",
    "tent_risk",
    "terminal_step",
    "uniform_risk",
]
