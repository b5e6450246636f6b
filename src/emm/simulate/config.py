# src/emm/simulate/config.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import math


class InvalidConfiguration(ValueError):
    """User-fixable configuration error."""


# ---------------------------------------------------------------------
# Figure presets (bounds/mode combinations used in the paper)
# ---------------------------------------------------------------------
PRESETS: Dict[str, Dict[str, Any]] = {
    "figure1": {"lower_bound": 0.0, "upper_bound": 1.0, "tent_mode": False},
    "figure2": {"lower_bound": 0.0, "upper_bound": 0.1, "tent_mode": False},
    "appendix_d": {"lower_bound": 0.0, "upper_bound": 1.0, "tent_mode": True},
}


# ---------------------------------------------------------------------
# Canonical config used by core.py / cli.py / tests
# ---------------------------------------------------------------------
@dataclass
class SimConfig:
    lower_bound: float = 0.0
    upper_bound: float = 1.0
    trial_count: int = 1_000_000
    tent_mode: bool = True

    # None -> fresh OS entropy; the resolved value is recorded on the tally.
    seed: Optional[int] = None

    # None -> trial_count (the bisection resolution historically followed the
    # trial count).
    bisection_resolution: Optional[int] = None

    batch_size: int = 65_536
    n_workers: int = 1

    def __post_init__(self) -> None:
        validate_cfg(self)

    @property
    def resolution(self) -> int:
        if self.bisection_resolution is None:
            return int(self.trial_count)
        return int(self.bisection_resolution)

    @classmethod
    def from_preset(cls, name: str, **overrides: Any) -> "SimConfig":
        key = str(name).strip().lower()
        try:
            base = PRESETS[key]
        except KeyError as e:
            raise InvalidConfiguration(f"unknown preset {name!r}; known: {sorted(PRESETS)}") from e
        return cls(**{**base, **overrides})

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["resolution"] = self.resolution
        return d


def _finite(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(float(x))


def _positive_int(x: Any) -> bool:
    return isinstance(x, int) and not isinstance(x, bool) and x > 0


def validate_cfg(cfg: SimConfig) -> None:
    # --- bounds ---
    if not _finite(cfg.lower_bound):
        raise InvalidConfiguration(f"lower_bound must be a finite number, got {cfg.lower_bound!r}")
    if not _finite(cfg.upper_bound):
        raise InvalidConfiguration(f"upper_bound must be a finite number, got {cfg.upper_bound!r}")
    if float(cfg.upper_bound) <= float(cfg.lower_bound):
        raise InvalidConfiguration(
            f"upper_bound must exceed lower_bound, got lower_bound={cfg.lower_bound!r}, "
            f"upper_bound={cfg.upper_bound!r}"
        )

    # --- sizes ---
    if not _positive_int(cfg.trial_count):
        raise InvalidConfiguration(f"trial_count must be positive int, got {cfg.trial_count!r}")
    if cfg.bisection_resolution is not None and not _positive_int(cfg.bisection_resolution):
        raise InvalidConfiguration(
            f"bisection_resolution must be positive int or None, got {cfg.bisection_resolution!r}"
        )
    if not _positive_int(cfg.batch_size):
        raise InvalidConfiguration(f"batch_size must be positive int, got {cfg.batch_size!r}")
    if not _positive_int(cfg.n_workers):
        raise InvalidConfiguration(f"n_workers must be positive int, got {cfg.n_workers!r}")

    # --- mode / seed ---
    if not isinstance(cfg.tent_mode, bool):
        raise InvalidConfiguration(f"tent_mode must be bool, got {cfg.tent_mode!r}")
    if cfg.seed is not None:
        if not isinstance(cfg.seed, int) or isinstance(cfg.seed, bool) or cfg.seed < 0:
            raise InvalidConfiguration(f"seed must be int >= 0 or None, got {cfg.seed!r}")


__all__ = [
    "InvalidConfiguration",
    "PRESETS",
    "SimConfig",
    "validate_cfg",
]
