"""vidpipe — video upload pipeline orchestrator."""

from vidpipe.version import __version__

__all__ = ["__version__"]
