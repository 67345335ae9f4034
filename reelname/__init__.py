"""ReelName: match scanned media folders against TMDB and transfer them to a library."""

from reelname.__version__ import __version__

__all__ = ["__version__"]
