"""Abstract base class for table-of-contents extractors."""

import threading
from abc import ABC, abstractmethod
from typing import Optional

from bookify.models import TocNode


class TocExtractor(ABC):
    """Infers a chapter tree from the HTML of a site's entry page."""

    @abstractmethod
    def can_handle(self, url: str) -> bool:
        """Return True if this extractor understands the site at ``url``."""
        ...

    @abstractmethod
    def extract(
        self,
        url: str,
        html: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> TocNode:
        """Build the TOC rooted at ``url``.

        Must not raise on malformed or empty HTML: implementations degrade
        to a root node without children.
        """
        ...
