from __future__ import annotations

"""
simulate.cli
============

CLI entrypoint + YAML schema parsing.

This file owns:
- YAML load errors
- flat + nested schema mapping -> SimConfig (presets and flags layered on top)
- artifact bundle writing + stable JSON diagnostics
- optional Venn diagram rendering
"""

import argparse
import hashlib
import json
import logging
import platform
import sys
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import yaml

from .config import PRESETS, InvalidConfiguration, SimConfig, validate_cfg
from .core import AgreementTally, run_simulation, summarize_tally
from .diagram import ResourceNotFound, render_diagram

LOG = logging.getLogger(__name__)

_CFG_KEYS = (
    "lower_bound",
    "upper_bound",
    "trial_count",
    "tent_mode",
    "seed",
    "bisection_resolution",
    "batch_size",
    "n_workers",
)


def _load_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            raw = f.read()
    except OSError as e:
        raise OSError(f"Could not read YAML config at path={path!r}: {e}") from e

    try:
        obj = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            loc = f"line={getattr(mark, 'line', '?')}, column={getattr(mark, 'column', '?')}"
            raise ValueError(f"YAML parse error in {path!r} ({loc}): {e}") from e
        raise ValueError(f"YAML parse error in {path!r}: {e}") from e

    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError(f"YAML config must parse to a mapping/dict, got {type(obj).__name__}")
    return dict(obj)


def _cfg_fields_from_dict(d: dict[str, Any]) -> dict[str, Any]:
    """
    Map a config mapping onto SimConfig fields.

    Accepts flat keys (trial_count, tent_mode, ...) or the nested schema

        preset: figure2
        sampling: {lower_bound, upper_bound, tent_mode, seed}
        simulate: {trial_count, bisection_resolution, batch_size, n_workers}

    Flat keys win over nested ones; both win over the preset.
    """

    def _require_dict(x: Any, name: str) -> dict[str, Any]:
        if not isinstance(x, dict):
            raise InvalidConfiguration(f"Expected mapping for '{name}', got {type(x).__name__}")
        return x

    def _f(x: Any, name: str) -> float:
        try:
            v = float(x)
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"{name} must be a number, got {x!r}") from e
        if not np.isfinite(v):
            raise InvalidConfiguration(f"{name} must be finite, got {v!r}")
        return v

    def _i(x: Any, name: str) -> int:
        if isinstance(x, bool):
            raise InvalidConfiguration(f"{name} must be an int, got bool {x!r}")
        try:
            v = int(x)
        except (TypeError, ValueError) as e:
            raise InvalidConfiguration(f"{name} must be an int, got {x!r}") from e
        if v != x and not isinstance(x, str):
            raise InvalidConfiguration(f"{name} must be an integer (no silent coercion), got {x!r}")
        return v

    def _b(x: Any, name: str) -> bool:
        if isinstance(x, bool):
            return x
        if isinstance(x, (int, float)) and x in (0, 1):
            return bool(x)
        if isinstance(x, str):
            s = x.strip().lower()
            if s in ("true", "yes", "y", "1"):
                return True
            if s in ("false", "no", "n", "0"):
                return False
        raise InvalidConfiguration(f"{name} must be a bool, got {x!r}")

    unknown_top = sorted(set(d) - set(_CFG_KEYS) - {"preset", "sampling", "simulate"})
    if unknown_top:
        raise InvalidConfiguration(f"unknown config keys: {unknown_top}")

    merged: dict[str, Any] = {}
    preset = d.get("preset")
    if preset is not None:
        key = str(preset).strip().lower()
        if key not in PRESETS:
            raise InvalidConfiguration(f"unknown preset {preset!r}; known: {sorted(PRESETS)}")
        merged.update(PRESETS[key])

    for section in ("sampling", "simulate"):
        if section in d and d[section] is not None:
            merged.update(_require_dict(d[section], section))
    for k in _CFG_KEYS:
        if k in d:
            merged[k] = d[k]

    unknown = sorted(set(merged) - set(_CFG_KEYS))
    if unknown:
        raise InvalidConfiguration(f"unknown config keys: {unknown}")

    out: dict[str, Any] = {}
    for k, v in merged.items():
        if k in ("lower_bound", "upper_bound"):
            out[k] = _f(v, k)
        elif k == "tent_mode":
            out[k] = _b(v, k)
        elif k in ("seed", "bisection_resolution") and v is None:
            out[k] = None
        else:
            out[k] = _i(v, k)
    return out


def _cfg_from_dict(d: dict[str, Any]) -> SimConfig:
    return SimConfig(**_cfg_fields_from_dict(d))


def _cfg_from_args(args: argparse.Namespace) -> SimConfig:
    fields: dict[str, Any] = {}
    if args.config is not None:
        fields.update(_cfg_fields_from_dict(_load_yaml(str(Path(args.config).expanduser()))))
    if args.preset is not None:
        # A preset only sets bounds and mode.
        fields.update(PRESETS[args.preset])

    overrides = {
        "trial_count": args.trials,
        "lower_bound": args.lower,
        "upper_bound": args.upper,
        "tent_mode": args.tent_mode,
        "seed": args.seed,
        "bisection_resolution": args.resolution,
        "batch_size": args.batch_size,
        "n_workers": args.workers,
    }
    fields.update({k: v for k, v in overrides.items() if v is not None})
    return SimConfig(**fields)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Monte Carlo agreement of effect-measure subsets between two strata."
    )
    ap.add_argument("--config", type=str, default=None, help="Path to YAML config.")
    ap.add_argument("--preset", type=str, default=None, choices=sorted(PRESETS), help="Figure preset.")
    ap.add_argument("--trials", type=int, default=None, help="Number of trials (default 1,000,000).")
    ap.add_argument("--lower", type=float, default=None, help="Lower risk bound.")
    ap.add_argument("--upper", type=float, default=None, help="Upper risk bound.")
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--tent", dest="tent_mode", action="store_true", default=None, help="Tent sampling.")
    mode.add_argument(
        "--independent", dest="tent_mode", action="store_false", default=None, help="Independent uniform sampling."
    )
    ap.add_argument("--seed", type=int, default=None, help="RNG seed (default: fresh entropy).")
    ap.add_argument(
        "--resolution", type=int, default=None, help="Bisection resolution (default: trial count)."
    )
    ap.add_argument("--batch_size", type=int, default=None, help="Trials per batch.")
    ap.add_argument("--workers", type=int, default=None, help="Worker processes.")
    ap.add_argument("--template", type=str, default=None, help="Venn diagram SVG template to fill in.")
    ap.add_argument("--svg_out", type=str, default=None, help="Write the rendered SVG here instead of stdout.")
    ap.add_argument("--out_dir", type=str, default=None, help="Write an artifact bundle to this directory.")
    ap.add_argument("--log_level", type=str, default="INFO", help="Logging level.")
    return ap


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(text)
    tmp.replace(path)


def _atomic_write_csv(df: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    df.to_csv(tmp, index=False)
    tmp.replace(path)


def _sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def write_bundle(tally: AgreementTally, out_dir: Path, *, diagnostics: dict[str, Any]) -> dict[str, str]:
    """Write tallies.csv, summary_by_size.csv, config_resolved.json and manifest.json."""
    out_dir.mkdir(parents=True, exist_ok=True)
    outputs: dict[str, str] = {}

    _atomic_write_csv(tally.to_frame(), out_dir / "tallies.csv")
    _atomic_write_csv(summarize_tally(tally), out_dir / "summary_by_size.csv")
    _atomic_write_text(
        out_dir / "config_resolved.json",
        json.dumps({**tally.config, "seed_resolved": tally.seed}, indent=2, sort_keys=True) + "\n",
    )
    for name in ("tallies.csv", "summary_by_size.csv", "config_resolved.json"):
        outputs[name] = _sha256_file(out_dir / name)

    manifest = {
        "python": sys.version,
        "platform": platform.platform(),
        "numpy": getattr(np, "__version__", None),
        "pandas": getattr(pd, "__version__", None),
        "file_sha256": outputs,
        "diagnostics": diagnostics,
    }
    _atomic_write_text(out_dir / "manifest.json", json.dumps(manifest, indent=2, sort_keys=True) + "\n")
    return outputs


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    run_started_utc = _utc_now()
    t0 = time.time()

    if args.config is not None and not Path(args.config).expanduser().exists():
        print(f"ERROR: config path does not exist: {args.config!r}", file=sys.stderr)
        return 2
    if args.template is not None and not Path(args.template).expanduser().is_file():
        print(f"ERROR: diagram template not found: {args.template!r}", file=sys.stderr)
        return 2

    try:
        cfg = _cfg_from_args(args)
        validate_cfg(cfg)
    except (ValueError, OSError) as e:
        LOG.exception("Config loading/validation failed.")
        print(f"ERROR: config loading/validation failed: {e}", file=sys.stderr)
        return 2

    try:
        tally = run_simulation(cfg)
    except Exception as e:
        LOG.exception("Simulation failed.")
        print(f"ERROR: simulation failed: {e}", file=sys.stderr)
        return 1

    diag = {
        "run_started_utc": run_started_utc,
        "run_finished_utc": _utc_now(),
        "elapsed_seconds": float(time.time() - t0),
        "trial_count": int(tally.trial_count),
        "tent_mode": bool(cfg.tent_mode),
        "lower_bound": float(cfg.lower_bound),
        "upper_bound": float(cfg.upper_bound),
        "resolution": int(cfg.resolution),
        "seed": tally.seed,
        "p_all_agree": tally.probability("abcdef"),
    }

    if args.template is not None:
        try:
            svg = render_diagram(args.template, tally.probability)
        except ResourceNotFound as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 2
        except OSError as e:
            LOG.exception("Reading the diagram template failed.")
            print(f"ERROR: reading the diagram template failed: {e}", file=sys.stderr)
            return 1
        if args.svg_out is not None:
            _atomic_write_text(Path(args.svg_out).expanduser(), svg)
        else:
            sys.stdout.write(svg)

    if args.out_dir is not None:
        out_dir = Path(args.out_dir).expanduser()
        try:
            write_bundle(tally, out_dir, diagnostics=diag)
        except OSError as e:
            LOG.exception("Writing outputs failed.")
            print(f"ERROR: writing outputs failed: {e}", file=sys.stderr)
            return 1
        print(f"[emm.simulate] outputs written to: {out_dir}", file=sys.stderr)

    # Keep stdout clean for the SVG when it is streamed there.
    diag_stream = sys.stderr if (args.template is not None and args.svg_out is None) else sys.stdout
    print(json.dumps(diag, sort_keys=True), file=diag_stream)
    return 0
