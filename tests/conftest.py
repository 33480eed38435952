"""Shared fakes: an in-memory website, a DNS table and a PDF-writing renderer."""

import ipaddress
import threading
from pathlib import Path

import pytest
from pypdf import PdfWriter

from bookify.errors import FetchError, JobCancelledError, RenderError
from bookify.net import FetchResult
from bookify.render.base import PageRenderer
from bookify.urls import strip_fragment


def write_pdf(path, pages: int = 1) -> Path:
    """Write a minimal valid PDF with ``pages`` blank pages."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=72, height=72)
    path = Path(path)
    with open(path, "wb") as f:
        writer.write(f)
    return path


def page(title: str, body: str = "") -> str:
    return f"<html><head><title>{title}</title></head><body>{body}</body></html>"


class FakeFetcher:
    """Serves pages from a dict of url → html (or url → FetchResult)."""

    def __init__(self, site: dict | None = None, broken: set | None = None, redirects: dict | None = None):
        self.site = site or {}
        self.broken = broken or set()
        self.redirects = redirects or {}
        self.calls: list[str] = []

    def fetch(self, url, cancel_event=None):
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelledError("Job was canceled")
        self.calls.append(url)
        url = strip_fragment(url)
        if url in self.broken:
            raise FetchError(f"Request to {url} failed: connection reset")
        final = self.redirects.get(url, url)
        entry = self.site.get(final)
        if entry is None:
            return FetchResult(url=final, status=404, content_type="text/html", text="")
        if isinstance(entry, FetchResult):
            return entry
        return FetchResult(url=final, status=200, content_type="text/html; charset=utf-8", text=entry)


class FakeResolver:
    def __init__(self, table: dict | None = None, default: str = "93.184.216.34"):
        self.table = table or {}
        self.default = default

    def resolve(self, host):
        addresses = self.table.get(host, [self.default])
        if addresses is None:
            raise OSError(f"Name or service not known: {host}")
        return [ipaddress.ip_address(a) for a in addresses]


class FakeRenderer(PageRenderer):
    """Writes a blank one-page PDF per URL.

    ``fail`` holds URLs that raise RenderError. When ``gate`` is given, each
    render waits for it, so tests can cancel while renders are in flight.
    """

    def __init__(self, fail=None, html: str | None = None, gate: threading.Event | None = None):
        self.fail = set(fail or ())
        self.html = html
        self.gate = gate
        self.rendered: list[str] = []
        self.started = threading.Event()
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def render_page(self, url, output_path, cancel_event=None):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started.set()
        try:
            if self.gate is not None:
                self.gate.wait(5)
            if url in self.fail:
                raise RenderError(f'Timeout while navigating to "{url}"', RenderError.TIMEOUT)
            write_pdf(output_path)
            with self._lock:
                self.rendered.append(url)
            return Path(output_path)
        finally:
            with self._lock:
                self.in_flight -= 1

    def get_rendered_html(self, url, cancel_event=None):
        if self.html is None:
            raise RenderError("Rendered DOM unavailable")
        return self.html

    def close(self):
        self.closed = True


@pytest.fixture
def example_site():
    """https://example.com with a nav linking /page1 and /page2."""
    nav = '<nav><ul><li><a href="/page1">Page 1</a></li><li><a href="/page2">Page 2</a></li></ul></nav>'
    return {
        "https://example.com": page("Example Docs", nav),
        "https://example.com/page1": page("Page 1", nav + "<p>One</p>"),
        "https://example.com/page2": page("Page 2", nav + "<p>Two</p>"),
    }
