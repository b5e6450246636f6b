"""
emm.simulate

Public import surface for the agreement simulation.
"""

from .codes import LETTER_WEIGHTS, bitmask_of, code_of, probability
from .config import InvalidConfiguration, SimConfig
from .core import AgreementTally, run_simulation, simulate_tallies, summarize_tally
from .diagram import ResourceNotFound, render_diagram
from .measures import EffectMeasure, Stratum, evaluate

__all__ = [
    "AgreementTally",
    "EffectMeasure",
    "InvalidConfiguration",
    "LETTER_WEIGHTS",
    "ResourceNotFound",
    "SimConfig",
    "Stratum",
    "bitmask_of",
    "code_of",
    "evaluate",
    "probability",
    "render_diagram",
    "run_simulation",
    "simulate_tallies",
    "summarize_tally",
]
