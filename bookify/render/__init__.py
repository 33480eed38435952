"""Page rendering backends."""

from bookify.render.base import PageRenderer

__all__ = ["PageRenderer"]
