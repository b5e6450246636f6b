from __future__ import annotations

"""
simulate.diagram
================

Fill a six-way Venn diagram template (SVG text) with agreement probabilities.

A label line looks like

    y="412.5">abd</text>

i.e. a y coordinate, then a lowercase a-f letter code directly before the
closing tag. The code is replaced by probability(code) as a plain decimal;
every other line passes through unchanged.
"""

from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Union

import logging
import re

import numpy as np

LOG = logging.getLogger(__name__)

LABEL_PATTERN = re.compile(r'(y="[0-9]+\.[0-9]+">)([a-f]+)(</)')


class ResourceNotFound(FileNotFoundError):
    """The diagram template asset does not exist."""


def format_probability(p: float) -> str:
    return np.format_float_positional(float(p), trim="0")


def load_template(path: Union[str, Path]) -> List[str]:
    """Read template lines. Missing file -> ResourceNotFound; other read errors propagate."""
    p = Path(path).expanduser()
    if not p.is_file():
        raise ResourceNotFound(f"diagram template not found: {str(p)!r}")
    with open(p, encoding="utf-8") as f:
        return f.read().splitlines()


def render_lines(lines: Iterable[str], probability: Callable[[str], float]) -> Iterator[str]:
    n_labels = 0
    for line in lines:
        m = LABEL_PATTERN.search(line)
        if m is None:
            yield line
            continue
        n_labels += 1
        value = format_probability(probability(m.group(2)))
        yield line[: m.start(2)] + value + line[m.end(2) :]
    LOG.debug("rendered %d diagram labels", n_labels)


def render_diagram(path: Union[str, Path], probability: Callable[[str], float]) -> str:
    """Render the template at `path`; `probability` is usually AgreementTally.probability."""
    return "\n".join(render_lines(load_template(path), probability)) + "\n"


__all__ = [
    "LABEL_PATTERN",
    "ResourceNotFound",
    "format_probability",
    "load_template",
    "render_diagram",
    "render_lines",
]
