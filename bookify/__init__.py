"""bookify - turn a documentation website into a single PDF book."""

__version__ = "0.1.0"
