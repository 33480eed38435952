"""Generic TOC extractor - infers chapters from navigation markup."""

import logging
import threading
from typing import Optional

from bs4 import BeautifulSoup, Tag

from bookify import config
from bookify.models import TocNode
from bookify.toc import register_extractor
from bookify.toc.base import TocExtractor
from bookify.urls import is_navigable, is_skipped_href, resolve_href, same_host

logger = logging.getLogger(__name__)

NAV_SELECTOR = (
    "nav, [role='navigation'], .nav, .navigation, .sidebar, aside nav, "
    "[class*='menu'], [class*='sidebar'], header, footer"
)
ITEM_SELECTOR = "li, [class*='menu-item'], [class*='nav-item']"
ITEM_CLASS_MARKERS = ("menu-item", "nav-item")


def _link_key(url: str) -> str:
    return url.lower()


def _is_item(tag) -> bool:
    if not isinstance(tag, Tag):
        return False
    if tag.name == "li":
        return True
    classes = " ".join(tag.get("class", []))
    return any(marker in classes for marker in ITEM_CLASS_MARKERS)


def _owner_item(tag: Tag, boundary: Tag) -> Optional[Tag]:
    """Nearest enclosing list item of ``tag`` inside ``boundary``."""
    for parent in tag.parents:
        if parent is boundary:
            return None
        if _is_item(parent):
            return parent
    return None


@register_extractor("generic")
class GenericNavTocExtractor(TocExtractor):
    """Builds the TOC from nav bars, sidebars, menus, headers and footers.

    Every same-host link on the page is also collected; it becomes the whole
    TOC when no navigation is found, and otherwise tops up the tree with
    pages only linked from the content.
    """

    def can_handle(self, url: str) -> bool:
        return True

    def extract(
        self,
        url: str,
        html: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> TocNode:
        if not html or not html.strip():
            return TocNode(title=url, url=url)

        try:
            soup = BeautifulSoup(html, "lxml")
        except (ValueError, TypeError) as e:
            logger.debug("HTML non analizzabile per %s: %s", url, e)
            return TocNode(title=url, url=url)

        root = TocNode(title=self._extract_title(soup, url), url=url)
        pool = self._collect_links(soup, url)

        for container in soup.select(NAV_SELECTOR):
            if cancel_event is not None and cancel_event.is_set():
                break
            internal = [a for a in container.find_all("a", href=True) if self._is_internal(a["href"], url)]
            if len(internal) < 2:
                continue
            root.children.extend(self._walk_container(container, url))

        if not root.children:
            root.children = pool[: config.TOC_FALLBACK_LIMIT]
            logger.debug("Nessuna navigazione trovata, uso %d link del documento", len(root.children))
        else:
            in_tree = {
                _link_key(u)
                for child in root.children
                for u in child.iter_urls()
            }
            missing = [node for node in pool if _link_key(node.url) not in in_tree]
            root.children.extend(missing[: config.TOC_AUGMENT_LIMIT])

        return root

    @staticmethod
    def _extract_title(soup: BeautifulSoup, url: str) -> str:
        if soup.title is not None:
            title = soup.title.get_text(strip=True)
            if title:
                return title
        h1 = soup.find("h1")
        if h1 is not None:
            title = h1.get_text(" ", strip=True)
            if title:
                return title
        return url

    @staticmethod
    def _is_internal(href: str, base_url: str) -> bool:
        href = (href or "").strip()
        if not href or is_skipped_href(href):
            return False
        resolved = resolve_href(base_url, href)
        return resolved is not None and is_navigable(resolved) and same_host(resolved, base_url)

    def _anchor_node(self, anchor: Tag, base_url: str) -> Optional[TocNode]:
        href = (anchor.get("href") or "").strip()
        if not self._is_internal(href, base_url):
            return None
        title = anchor.get_text(" ", strip=True) or href
        return TocNode(title=title, url=resolve_href(base_url, href))

    def _collect_links(self, soup: BeautifulSoup, base_url: str) -> list[TocNode]:
        """Every internal link of the document, first occurrence wins."""
        nodes = []
        seen = set()
        for anchor in soup.find_all("a", href=True):
            node = self._anchor_node(anchor, base_url)
            if node is None or _link_key(node.url) in seen:
                continue
            seen.add(_link_key(node.url))
            nodes.append(node)
        return nodes

    def _walk_container(self, container: Tag, base_url: str) -> list[TocNode]:
        """Turn the list structure of a navigation container into a tree.

        Items are walked with an explicit stack in document order. An item
        without a usable link of its own hands its sub-items to its parent.
        """
        top_items = []
        sub_items: dict[int, list[Tag]] = {}
        for item in container.select(ITEM_SELECTOR):
            owner = _owner_item(item, container)
            if owner is None:
                top_items.append(item)
            else:
                sub_items.setdefault(id(owner), []).append(item)

        processed = set()
        nodes: list[TocNode] = []
        stack = [(item, nodes) for item in reversed(top_items)]
        while stack:
            item, siblings = stack.pop()
            target = siblings

            anchor = self._own_anchor(item, container)
            node = self._anchor_node(anchor, base_url) if anchor is not None else None
            if node is not None and _link_key(node.url) not in processed:
                processed.add(_link_key(node.url))
                siblings.append(node)
                target = node.children

            for child in reversed(sub_items.get(id(item), [])):
                stack.append((child, target))

        if not nodes:
            # Links without list markup
            for anchor in container.find_all("a", href=True):
                node = self._anchor_node(anchor, base_url)
                if node is not None and _link_key(node.url) not in processed:
                    processed.add(_link_key(node.url))
                    nodes.append(node)

        return nodes

    @staticmethod
    def _own_anchor(item: Tag, container: Tag) -> Optional[Tag]:
        if item.name == "a" and item.get("href"):
            return item
        for anchor in item.find_all("a", href=True):
            if anchor is item or _owner_item(anchor, container) is item:
                return anchor
        return None
