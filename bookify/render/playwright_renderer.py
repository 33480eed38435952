"""Playwright renderer - headless Chromium pages printed to PDF."""

import asyncio
import contextlib
import logging
import subprocess
import sys
import threading
from pathlib import Path
from threading import Thread
from typing import Optional
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from bookify import config
from bookify.errors import JobCancelledError, RenderError
from bookify.models import PdfOptions
from bookify.render.base import PageRenderer

logger = logging.getLogger(__name__)

CRASH_MARKERS = ("crashed", "Target closed", "Target page, context or browser has been closed")
MISSING_BROWSER_MARKERS = ("Executable doesn't exist", "playwright install")


def install_browsers() -> None:
    """Download the Chromium build Playwright expects."""
    try:
        subprocess.run(
            [sys.executable, "-m", "playwright", "install", "chromium"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise RenderError(
            f"Impossibile installare Chromium per Playwright: {e}\n"
            f"Prova manualmente: python -m playwright install chromium"
        ) from e


def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise JobCancelledError("Job was canceled")


class PlaywrightRenderer(PageRenderer):
    """One Chromium instance shared by every render of a job.

    Playwright runs on a private event loop thread; callers on any thread
    block on the submitted coroutine, so concurrent renders share the
    browser without sharing a loop.
    """

    def __init__(self, pdf_options: Optional[PdfOptions] = None, headless: bool = True):
        self.pdf_options = pdf_options or PdfOptions()
        self.headless = headless
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[Thread] = None
        self._lock = threading.Lock()
        self._browser_lock = asyncio.Lock()
        self._playwright = None
        self._browser = None
        self._closed = False

    def render_page(self, url, output_path, cancel_event=None) -> Path:
        return self._run(self._render_async(url, Path(output_path), cancel_event))

    def get_rendered_html(self, url, cancel_event=None) -> str:
        return self._run(self._content_async(url, cancel_event))

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            loop, thread = self._loop, self._thread

        if loop is None:
            return
        try:
            asyncio.run_coroutine_threadsafe(self._shutdown_async(), loop).result()
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join()
            loop.close()

    # --- event loop plumbing ---

    def _run(self, coro):
        loop = self._ensure_loop()
        return asyncio.run_coroutine_threadsafe(coro, loop).result()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._closed:
                raise RenderError("Renderer is closed")
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = Thread(
                    target=self._loop.run_forever,
                    name="playwright-loop",
                    daemon=True,
                )
                self._thread.start()
            return self._loop

    async def _ensure_browser(self):
        async with self._browser_lock:
            if self._browser is not None:
                return self._browser

            self._playwright = await async_playwright().start()
            try:
                self._browser = await self._playwright.chromium.launch(headless=self.headless)
            except PlaywrightError as e:
                if not any(marker in str(e) for marker in MISSING_BROWSER_MARKERS):
                    raise RenderError(f"Impossibile avviare Chromium: {e}") from e
                logger.warning("Chromium non trovato, installazione in corso...")
                await asyncio.to_thread(install_browsers)
                self._browser = await self._playwright.chromium.launch(headless=self.headless)
            logger.info("Chromium avviato")
            return self._browser

    async def _shutdown_async(self) -> None:
        if self._browser is not None:
            with contextlib.suppress(PlaywrightError):
                await self._browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._browser = None
        self._playwright = None

    # --- page work ---

    async def _open(self, url: str, cancel_event):
        """Navigate a fresh context to ``url`` and let the page settle."""
        _check_cancelled(cancel_event)
        browser = await self._ensure_browser()
        context = await browser.new_context(viewport=config.VIEWPORT)
        try:
            page = await context.new_page()
            await page.goto(url, wait_until="networkidle", timeout=config.RENDER_TIMEOUT_MS)

            if urlsplit(url).fragment.startswith("/"):
                # Hash-routed pages render after the router kicks in
                await page.wait_for_load_state("networkidle")
                await asyncio.sleep(config.HASH_ROUTE_SETTLE_DELAY_MS / 1000)
            else:
                await asyncio.sleep(config.SETTLE_DELAY_MS / 1000)
            _check_cancelled(cancel_event)
        except BaseException:
            with contextlib.suppress(PlaywrightError):
                await context.close()
            raise
        return context, page

    async def _render_async(self, url: str, output_path: Path, cancel_event) -> Path:
        try:
            context, page = await self._open(url, cancel_event)
            try:
                await page.add_style_tag(content=config.HIDDEN_CHROME_CSS)
                await page.emulate_media(media="screen")
                await page.pdf(path=str(output_path), **self.pdf_options.to_playwright())
            finally:
                with contextlib.suppress(PlaywrightError):
                    await context.close()
        except PlaywrightTimeoutError as e:
            raise RenderError(
                f'Timeout while navigating to "{url}", waiting until "networkidle"',
                RenderError.TIMEOUT,
            ) from e
        except PlaywrightError as e:
            if any(marker in str(e) for marker in CRASH_MARKERS):
                raise RenderError(f'Page crashed while rendering "{url}"', RenderError.CRASH) from e
            raise RenderError(f'Error rendering page "{url}": {e}') from e

        logger.debug("Pagina renderizzata: %s -> %s", url, output_path.name)
        return output_path

    async def _content_async(self, url: str, cancel_event) -> str:
        try:
            context, page = await self._open(url, cancel_event)
            try:
                return await page.content()
            finally:
                with contextlib.suppress(PlaywrightError):
                    await context.close()
        except PlaywrightTimeoutError as e:
            raise RenderError(f'Timeout while loading "{url}"', RenderError.TIMEOUT) from e
        except PlaywrightError as e:
            raise RenderError(f'Error loading "{url}": {e}') from e
