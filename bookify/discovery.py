"""Link discovery - breadth-first crawl of the seed host."""

import logging
import threading
from collections import deque
from typing import Optional

from bs4 import BeautifulSoup

from bookify import config
from bookify.errors import FetchError, JobCancelledError
from bookify.net import HttpFetcher
from bookify.urls import (
    host_of,
    is_navigable,
    is_skipped_href,
    normalize_url,
    resolve_href,
    strip_fragment,
)

logger = logging.getLogger(__name__)


class LinkDiscoverer:
    """Crawl a site breadth-first and collect its internal pages."""

    def __init__(
        self,
        fetcher: Optional[HttpFetcher] = None,
        max_pages: int = config.MAX_PAGES,
        max_depth: int = config.MAX_DEPTH,
    ):
        self.fetcher = fetcher or HttpFetcher()
        self.max_pages = max_pages
        self.max_depth = max_depth

    def discover(self, seed_url: str, cancel_event: Optional[threading.Event] = None) -> list[str]:
        """Return the pages reachable from ``seed_url`` on the same host.

        Pages that fail to load are skipped. The result holds at most one URL
        per normalization key and is sorted for reproducibility.
        """
        base_host = host_of(seed_url)
        discovered: dict[str, str] = {}
        queue: deque[tuple[str, int]] = deque([(seed_url, 0)])

        while queue and len(discovered) < self.max_pages:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Crawl interrotto: cancellazione richiesta")
                break

            url, depth = queue.popleft()
            if depth > self.max_depth:
                continue

            key = normalize_url(url)
            if key in discovered or host_of(url) != base_host:
                continue

            html = self._fetch(url, cancel_event)
            if html is None:
                continue

            discovered[key] = url
            for link in self._extract_links(html, url, base_host):
                if normalize_url(link) not in discovered:
                    queue.append((link, depth + 1))

        logger.info("Scoperte %d pagine su %s", len(discovered), base_host)
        return sorted(discovered.values())

    def _fetch(self, url: str, cancel_event: Optional[threading.Event]) -> Optional[str]:
        try:
            result = self.fetcher.fetch(url, cancel_event)
        except JobCancelledError:
            return None
        except FetchError as e:
            logger.debug("Pagina saltata %s: %s", url, e)
            return None
        if not result.ok or not result.text.strip():
            logger.debug("Pagina saltata %s: status %s", url, result.status)
            return None
        return result.text

    @staticmethod
    def _extract_links(html: str, page_url: str, base_host: str) -> list[str]:
        """Return same-host http(s) links of a page, fragments removed."""
        soup = BeautifulSoup(html, "lxml")
        links = []
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or is_skipped_href(href):
                continue
            resolved = resolve_href(page_url, href)
            if resolved is None:
                continue
            link = strip_fragment(resolved)
            if is_navigable(link) and host_of(link) == base_host:
                links.append(link)
        return links
