"""Abstract base class for page renderers."""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class PageRenderer(ABC):
    """Renders web pages with a real browser engine."""

    @abstractmethod
    def render_page(
        self,
        url: str,
        output_path: Path,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        """Print ``url`` to a PDF at ``output_path`` and return the path.

        Raises:
            RenderError: With category ``crash``, ``timeout`` or ``other``.
            JobCancelledError: If cancellation was observed mid-render.
        """
        ...

    @abstractmethod
    def get_rendered_html(
        self,
        url: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Return the DOM of ``url`` after client-side scripts have run."""
        ...

    def close(self) -> None:
        """Release browser resources. Safe to call more than once."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
