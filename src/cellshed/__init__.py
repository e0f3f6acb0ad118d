"""cellshed - Watershed-based cell detection with region consolidation."""

__version__ = "0.1.0"

from . import core

__all__ = [
    "core",
]
