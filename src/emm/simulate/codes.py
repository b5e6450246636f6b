from __future__ import annotations

"""
simulate.codes
==============

Letter codes used by the six-way Venn diagram, and their bitmask indices.

Each letter names one effect measure and carries a fixed bit weight. The
weights are not sequential in canonical measure order; the diagram asset
depends on them exactly:

    letter  measure  weight
    a       RR       32
    b       OR       16
    c       HR*       1
    d       RR*       4
    e       RD        8
    f       HR        2
"""

from typing import Dict, Sequence, Tuple

from .measures import CANONICAL_ORDER, EffectMeasure

N_SUBSETS = 64
FULL_MASK = N_SUBSETS - 1

LETTER_WEIGHTS: Dict[str, int] = {"a": 32, "b": 16, "c": 1, "d": 4, "e": 8, "f": 2}

MEASURE_LETTERS: Dict[EffectMeasure, str] = {
    EffectMeasure.RELATIVE_RISK: "a",
    EffectMeasure.ODDS_RATIO: "b",
    EffectMeasure.OTHER_HAZARD_RATIO: "c",
    EffectMeasure.OTHER_RELATIVE_RISK: "d",
    EffectMeasure.RISK_DIFFERENCE: "e",
    EffectMeasure.HAZARD_RATIO: "f",
}

# Bit weight of each measure, in canonical order.
MEASURE_WEIGHTS: Tuple[int, ...] = tuple(LETTER_WEIGHTS[MEASURE_LETTERS[m]] for m in CANONICAL_ORDER)


def bitmask_of(code: str) -> int:
    """Sum of weights of the distinct letters in `code`; other characters are ignored."""
    return sum(LETTER_WEIGHTS[ch] for ch in set(code) if ch in LETTER_WEIGHTS)


def _check_mask(bitmask: int) -> int:
    m = int(bitmask)
    if not (0 <= m <= FULL_MASK):
        raise ValueError(f"bitmask must be in [0, {FULL_MASK}], got {bitmask!r}")
    return m


def code_of(bitmask: int) -> str:
    m = _check_mask(bitmask)
    return "".join(ch for ch in sorted(LETTER_WEIGHTS) if m & LETTER_WEIGHTS[ch])


def measures_of(bitmask: int) -> Tuple[EffectMeasure, ...]:
    m = _check_mask(bitmask)
    return tuple(em for em, w in zip(CANONICAL_ORDER, MEASURE_WEIGHTS) if m & w)


def probability(code: str, tallies: Sequence[int], trial_count: int) -> float:
    """Estimated probability that the measures named by `code` agree."""
    return float(tallies[bitmask_of(code)]) / float(trial_count)


__all__ = [
    "FULL_MASK",
    "LETTER_WEIGHTS",
    "MEASURE_LETTERS",
    "MEASURE_WEIGHTS",
    "N_SUBSETS",
    "bitmask_of",
    "code_of",
    "measures_of",
    "probability",
]
