from __future__ import annotations

"""
simulate.agreement
==================

Agreement of effect-measure subsets between two strata.

For each measure the "direction" is whether stratum 2's value is strictly
greater than stratum 1's (NaN compares false, ties count as not greater).
A subset (bitmask over the letter weights in codes.py) agrees iff its
directions are not a mix of true and false; the empty subset always agrees.

The directions of one trial collapse to a single "vote mask" (the bits of the
measures voting true), so agreement for every subset is a lookup in a
precomputed 64 x 64 table:

    AGREEMENT_TABLE[up, b] == not (b & up and b & ~up)
"""

import numpy as np

from .codes import FULL_MASK, MEASURE_WEIGHTS, N_SUBSETS
from .measures import Stratum

_WEIGHTS = np.asarray(MEASURE_WEIGHTS, dtype=np.int64)


def _build_agreement_table() -> np.ndarray:
    up = np.arange(N_SUBSETS, dtype=np.int64)[:, None]
    subset = np.arange(N_SUBSETS, dtype=np.int64)[None, :]
    down = FULL_MASK ^ up
    mixed = ((subset & up) != 0) & ((subset & down) != 0)
    table = ~mixed
    table.setflags(write=False)
    return table


AGREEMENT_TABLE: np.ndarray = _build_agreement_table()
_AGREEMENT_COUNTS = AGREEMENT_TABLE.astype(np.int64)


def direction_vector(stratum1: Stratum, stratum2: Stratum) -> np.ndarray:
    """Bool array (..., 6): is stratum 2's measure strictly greater than stratum 1's?"""
    with np.errstate(invalid="ignore"):
        return stratum2.effect_measures() > stratum1.effect_measures()


def vote_mask(directions: np.ndarray) -> np.ndarray:
    """Bitmask of the measures whose direction is true."""
    d = np.asarray(directions, dtype=bool)
    if d.shape[-1] != _WEIGHTS.size:
        raise ValueError(f"directions must have trailing dimension {_WEIGHTS.size}, got shape {d.shape}")
    return d.astype(np.int64) @ _WEIGHTS


def subset_agrees(directions: np.ndarray, bitmask: int) -> bool:
    return bool(AGREEMENT_TABLE[int(vote_mask(directions)), int(bitmask)])


def agreement_vector(stratum1: Stratum, stratum2: Stratum) -> np.ndarray:
    """Bool array (64,) indexed by subset bitmask, for a single pair of strata."""
    up = vote_mask(direction_vector(stratum1, stratum2))
    if np.ndim(up) != 0:
        raise ValueError("agreement_vector expects scalar strata; use agreement_counts for batches")
    return AGREEMENT_TABLE[int(up)].copy()


def agreement_counts(up_masks: np.ndarray) -> np.ndarray:
    """Per-subset count of agreeing trials for a batch of vote masks."""
    hist = np.bincount(np.asarray(up_masks, dtype=np.int64).ravel(), minlength=N_SUBSETS)
    return hist @ _AGREEMENT_COUNTS


__all__ = [
    "AGREEMENT_TABLE",
    "agreement_counts",
    "agreement_vector",
    "direction_vector",
    "subset_agrees",
    "vote_mask",
]
