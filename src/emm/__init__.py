"""Top-level package for the effect-measure agreement simulation."""

from importlib import metadata as _metadata

from . import simulate

try:
    __version__ = _metadata.version("emm-venn")
except _metadata.PackageNotFoundError:  # pragma: no cover - during local usage
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "simulate",
]
