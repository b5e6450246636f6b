from __future__ import annotations

"""
simulate.measures
=================

The six effect measures computed for one stratum from its control risk p_c and
treatment risk p_t:

    RR  = p_t / p_c
    RR* = (1 - p_c) / (1 - p_t)
    OR  = RR * RR*
    RD  = p_t - p_c
    HR  = ln(1 - p_t) / ln(1 - p_c)
    HR* = ln(p_c) / ln(p_t)

Every function accepts floats or numpy arrays. Degenerate inputs (p_c = 0,
p_t = 1, ...) never raise: they produce inf/nan, which later compare false in
both directions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Tuple

import numpy as np

N_MEASURES = 6


class EffectMeasure(Enum):
    """Effect measures in canonical order (the order of EffectMeasureVector)."""

    RELATIVE_RISK = "RR"
    OTHER_RELATIVE_RISK = "RR*"
    ODDS_RATIO = "OR"
    RISK_DIFFERENCE = "RD"
    HAZARD_RATIO = "HR"
    OTHER_HAZARD_RATIO = "HR*"


CANONICAL_ORDER: Tuple[EffectMeasure, ...] = tuple(EffectMeasure)


def relative_risk(control_risk: Any, treatment_risk: Any) -> Any:
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.divide(treatment_risk, control_risk)


def other_relative_risk(control_risk: Any, treatment_risk: Any) -> Any:
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.divide(np.subtract(1.0, control_risk), np.subtract(1.0, treatment_risk))


def odds_ratio(control_risk: Any, treatment_risk: Any) -> Any:
    with np.errstate(invalid="ignore", over="ignore"):
        return np.multiply(
            relative_risk(control_risk, treatment_risk),
            other_relative_risk(control_risk, treatment_risk),
        )


def risk_difference(control_risk: Any, treatment_risk: Any) -> Any:
    return np.subtract(treatment_risk, control_risk)


def hazard_ratio(control_risk: Any, treatment_risk: Any) -> Any:
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.divide(
            np.log(np.subtract(1.0, treatment_risk)),
            np.log(np.subtract(1.0, control_risk)),
        )


def other_hazard_ratio(control_risk: Any, treatment_risk: Any) -> Any:
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.divide(np.log(control_risk), np.log(treatment_risk))


MEASURE_FUNCTIONS: Dict[EffectMeasure, Callable[[Any, Any], Any]] = {
    EffectMeasure.RELATIVE_RISK: relative_risk,
    EffectMeasure.OTHER_RELATIVE_RISK: other_relative_risk,
    EffectMeasure.ODDS_RATIO: odds_ratio,
    EffectMeasure.RISK_DIFFERENCE: risk_difference,
    EffectMeasure.HAZARD_RATIO: hazard_ratio,
    EffectMeasure.OTHER_HAZARD_RATIO: other_hazard_ratio,
}


def evaluate(control_risk: Any, treatment_risk: Any) -> np.ndarray:
    """
    EffectMeasureVector for one stratum (or a batch of strata).

    Returns an array of shape (..., 6) in canonical order.
    """
    c = np.asarray(control_risk, dtype=np.float64)
    t = np.asarray(treatment_risk, dtype=np.float64)
    return np.stack([MEASURE_FUNCTIONS[m](c, t) for m in CANONICAL_ORDER], axis=-1)


@dataclass(frozen=True)
class Stratum:
    """
    A population subgroup: control-group risk and treatment-group risk.

    No bounds are enforced; fields may also be numpy arrays holding a batch.
    """

    control_risk: Any
    treatment_risk: Any

    def relative_risk(self) -> Any:
        return relative_risk(self.control_risk, self.treatment_risk)

    def other_relative_risk(self) -> Any:
        return other_relative_risk(self.control_risk, self.treatment_risk)

    def odds_ratio(self) -> Any:
        return odds_ratio(self.control_risk, self.treatment_risk)

    def risk_difference(self) -> Any:
        return risk_difference(self.control_risk, self.treatment_risk)

    def hazard_ratio(self) -> Any:
        return hazard_ratio(self.control_risk, self.treatment_risk)

    def other_hazard_ratio(self) -> Any:
        return other_hazard_ratio(self.control_risk, self.treatment_risk)

    def effect_measures(self) -> np.ndarray:
        return evaluate(self.control_risk, self.treatment_risk)


__all__ = [
    "CANONICAL_ORDER",
    "EffectMeasure",
    "MEASURE_FUNCTIONS",
    "N_MEASURES",
    "Stratum",
    "evaluate",
    "hazard_ratio",
    "odds_ratio",
    "other_hazard_ratio",
    "other_relative_risk",
    "relative_risk",
    "risk_difference",
]
