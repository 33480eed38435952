"""Tests for breadth-first link discovery."""

import threading

from bookify.discovery import LinkDiscoverer
from bookify.urls import host_of, normalize_url

from conftest import FakeFetcher, page


def _links(*hrefs):
    return "".join(f'<a href="{href}">{href}</a>' for href in hrefs)


class TestLinkDiscoverer:
    def test_discovers_linked_pages(self, example_site):
        pages = LinkDiscoverer(FakeFetcher(example_site)).discover("https://example.com")
        assert pages == [
            "https://example.com",
            "https://example.com/page1",
            "https://example.com/page2",
        ]

    def test_max_depth_one_stops_after_first_hop(self):
        site = {
            "https://docs.dev/a": page("A", _links("/b")),
            "https://docs.dev/b": page("B", _links("/c")),
            "https://docs.dev/c": page("C"),
        }
        pages = LinkDiscoverer(FakeFetcher(site), max_depth=1).discover("https://docs.dev/a")
        assert pages == ["https://docs.dev/a", "https://docs.dev/b"]

    def test_max_pages_caps_result(self):
        site = {"https://docs.dev": page("Home", _links(*[f"/p{i}" for i in range(20)]))}
        site.update({f"https://docs.dev/p{i}": page(f"P{i}") for i in range(20)})
        pages = LinkDiscoverer(FakeFetcher(site), max_pages=5).discover("https://docs.dev")
        assert len(pages) == 5

    def test_never_returns_duplicate_keys(self):
        site = {
            "https://docs.dev/guide": page("Guide", _links(
                "/guide/", "/guide/index.html", "/guide?tab=2", "/guide#intro", "HTTPS://DOCS.DEV/guide",
            )),
            "https://docs.dev/guide/": page("Guide"),
            "https://docs.dev/guide/index.html": page("Guide"),
        }
        pages = LinkDiscoverer(FakeFetcher(site)).discover("https://docs.dev/guide")
        keys = [normalize_url(p) for p in pages]
        assert len(keys) == len(set(keys))
        assert len(pages) == 1

    def test_stays_on_seed_host(self):
        site = {
            "https://docs.dev": page("Home", _links(
                "https://other.dev/x", "https://sub.docs.dev/y", "/z",
                "mailto:team@docs.dev", "tel:+123", "javascript:void(0)",
            )),
            "https://docs.dev/z": page("Z"),
            "https://other.dev/x": page("X"),
        }
        fetcher = FakeFetcher(site)
        pages = LinkDiscoverer(fetcher).discover("https://docs.dev")
        assert all(host_of(p) == "docs.dev" for p in pages)
        assert pages == ["https://docs.dev", "https://docs.dev/z"]
        assert not any("other.dev" in url for url in fetcher.calls)

    def test_broken_pages_are_skipped(self):
        site = {
            "https://docs.dev": page("Home", _links("/broken", "/missing", "/ok")),
            "https://docs.dev/ok": page("OK"),
        }
        fetcher = FakeFetcher(site, broken={"https://docs.dev/broken"})
        pages = LinkDiscoverer(fetcher).discover("https://docs.dev")
        assert pages == ["https://docs.dev", "https://docs.dev/ok"]

    def test_cancelled_before_start_returns_empty(self, example_site):
        cancel = threading.Event()
        cancel.set()
        assert LinkDiscoverer(FakeFetcher(example_site)).discover("https://example.com", cancel) == []

    def test_result_is_sorted(self):
        site = {
            "https://docs.dev": page("Home", _links("/zeta", "/alpha", "/mid")),
            "https://docs.dev/zeta": page("Z"),
            "https://docs.dev/alpha": page("A"),
            "https://docs.dev/mid": page("M"),
        }
        pages = LinkDiscoverer(FakeFetcher(site)).discover("https://docs.dev")
        assert pages == sorted(pages)
