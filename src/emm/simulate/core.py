from __future__ import annotations

"""
simulate.core
=============

Core simulation harness:
- tally_batch
- run_simulation / simulate_tallies
- AgreementTally (frozen result + probability queries)
- summarize_tally

One trial: draw four risks -> two strata -> six-measure directions -> vote mask
-> agreement for all 64 subsets. Trials are processed in batches; each batch has
its own RNG (rng_for_batch) and its own partial tally, and partial tallies are
summed. Tallies are therefore identical for any n_workers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import logging
import time

import numpy as np
import pandas as pd

from . import codes as C
from .agreement import agreement_counts, direction_vector, vote_mask
from .config import SimConfig, validate_cfg
from .measures import Stratum
from .sampling import draw_risks, rng_for_batch

LOG = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------
@dataclass(frozen=True, eq=False)
class AgreementTally:
    counts: np.ndarray
    trial_count: int
    seed: Optional[int] = None
    config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        arr = np.array(self.counts, dtype=np.int64)
        if arr.shape != (C.N_SUBSETS,):
            raise ValueError(f"counts must have shape ({C.N_SUBSETS},), got {arr.shape}")
        if int(self.trial_count) <= 0:
            raise ValueError(f"trial_count must be positive, got {self.trial_count!r}")
        if np.any(arr < 0) or np.any(arr > int(self.trial_count)):
            raise ValueError(f"counts must lie in [0, trial_count={self.trial_count}]")
        arr.setflags(write=False)
        object.__setattr__(self, "counts", arr)

    def probability(self, code: str) -> float:
        return C.probability(code, self.counts, self.trial_count)

    def probability_of_mask(self, bitmask: int) -> float:
        return self.probability(C.code_of(bitmask))

    def probabilities(self) -> np.ndarray:
        return self.counts / float(self.trial_count)

    def to_frame(self) -> pd.DataFrame:
        rows: List[Dict[str, Any]] = []
        for mask in range(C.N_SUBSETS):
            members = C.measures_of(mask)
            rows.append(
                {
                    "bitmask": mask,
                    "code": C.code_of(mask),
                    "measures": ",".join(m.value for m in members),
                    "subset_size": len(members),
                    "count": int(self.counts[mask]),
                    "probability": float(self.counts[mask]) / float(self.trial_count),
                }
            )
        return pd.DataFrame.from_records(rows)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "trial_count": int(self.trial_count),
            "seed": self.seed,
            "counts": [int(x) for x in self.counts.tolist()],
            "config": dict(self.config),
        }


# ---------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------
def _batch_sizes(trial_count: int, batch_size: int) -> List[int]:
    full, rest = divmod(int(trial_count), int(batch_size))
    sizes = [int(batch_size)] * full
    if rest:
        sizes.append(rest)
    return sizes


def tally_batch(cfg: SimConfig, *, seed: int, batch_index: int, size: int) -> np.ndarray:
    """Agreement counts (int64[64]) for one batch of `size` trials."""
    rng = rng_for_batch(int(seed), int(batch_index))
    p1, p2, p3, p4 = draw_risks(
        rng,
        size,
        lower=float(cfg.lower_bound),
        upper=float(cfg.upper_bound),
        tent_mode=bool(cfg.tent_mode),
        resolution=cfg.resolution,
    )
    directions = direction_vector(Stratum(p1, p2), Stratum(p3, p4))
    counts = agreement_counts(vote_mask(directions))
    LOG.debug("batch %d: %d trials tallied", batch_index, size)
    return counts


def _resolve_seed(seed: Optional[int]) -> int:
    if seed is not None:
        return int(seed)
    # Fresh OS entropy, folded to a loggable/recordable int.
    return int(np.random.SeedSequence().generate_state(1, dtype=np.uint64)[0])


def run_simulation(cfg: SimConfig) -> AgreementTally:
    """
    Run cfg.trial_count trials and return the per-subset agreement tally.
    """
    validate_cfg(cfg)
    seed = _resolve_seed(cfg.seed)
    sizes = _batch_sizes(cfg.trial_count, cfg.batch_size)
    jobs: List[Tuple[int, int]] = list(enumerate(sizes))

    LOG.info(
        "Running simulation: trials=%s tent_mode=%s bounds=[%s, %s] resolution=%s batches=%s workers=%s seed=%s",
        cfg.trial_count,
        cfg.tent_mode,
        cfg.lower_bound,
        cfg.upper_bound,
        cfg.resolution,
        len(jobs),
        cfg.n_workers,
        seed,
    )
    t0 = time.time()
    totals = np.zeros(C.N_SUBSETS, dtype=np.int64)

    if cfg.n_workers <= 1 or len(jobs) <= 1:
        for batch_index, size in jobs:
            totals += tally_batch(cfg, seed=seed, batch_index=batch_index, size=size)
    else:
        from concurrent.futures import ProcessPoolExecutor as Executor
        from concurrent.futures import as_completed

        with Executor(max_workers=min(int(cfg.n_workers), len(jobs))) as pool:
            futs = [
                pool.submit(tally_batch, cfg, seed=seed, batch_index=batch_index, size=size)
                for batch_index, size in jobs
            ]
            for fut in as_completed(futs):
                totals += fut.result()

    if int(totals[0]) != int(cfg.trial_count):
        raise RuntimeError(
            f"empty-subset tally {int(totals[0])} != trial_count {cfg.trial_count}; batches were lost"
        )

    LOG.info("Simulation finished in %.2fs", time.time() - t0)
    return AgreementTally(counts=totals, trial_count=int(cfg.trial_count), seed=seed, config=cfg.to_dict())


def simulate_tallies(
    trial_count: int,
    *,
    tent_mode: bool = True,
    seed: Optional[int] = None,
    **overrides: Any,
) -> AgreementTally:
    """run(trial_count, mode) with the remaining settings at their defaults."""
    cfg = SimConfig(trial_count=trial_count, tent_mode=tent_mode, seed=seed, **overrides)
    return run_simulation(cfg)


# ---------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------
def summarize_tally(tally: AgreementTally) -> pd.DataFrame:
    """
    Agreement probability by subset size (0..6): number of subsets, min/mean/max.
    """
    df = tally.to_frame()
    out = (
        df.groupby("subset_size", sort=True)["probability"]
        .agg(n_subsets="count", probability_min="min", probability_mean="mean", probability_max="max")
        .reset_index()
    )
    out["n_subsets"] = out["n_subsets"].astype(int)
    return out


__all__ = [
    "AgreementTally",
    "run_simulation",
    "simulate_tallies",
    "summarize_tally",
    "tally_batch",
]
