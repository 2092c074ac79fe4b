"""schedulebud: file fingerprint cache and planner import/export."""

from schedulebud.version import __version__

__all__ = ["__version__"]
