"""Book generator - orchestrates the full URL → pages → PDF pipeline."""

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import urlsplit

from bookify import config
from bookify.discovery import LinkDiscoverer
from bookify.errors import FetchError, JobCancelledError, NoPartialPagesError, ValidationError
from bookify.models import JobState, JobStatus, RenderOutcome, TocNode
from bookify.net import HttpFetcher
from bookify.pdf.merger import merge_files
from bookify.render.base import PageRenderer
from bookify.toc import get_extractor
from bookify.urls import is_navigable, page_key, same_host, strip_fragment
from bookify.validator import UrlValidator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[JobStatus], None]
Merger = Callable[[Iterable, Path], Path]

CANCELLED_MESSAGE = "Job was canceled or timed out"
PAGE_FILE_NAME = "page_{index:04d}.pdf"
PAGE_FILE_RE = re.compile(r"^page_(\d+)\.pdf$")


def build_file_name(title: Optional[str], job_id: str) -> str:
    """File name of the merged book: ``"my docs"`` → ``MyDocs<job_id>.pdf``."""
    if not title or not title.strip():
        return f"book{job_id}.pdf"
    name = "".join(part[:1].upper() + part[1:] for part in title.split())
    name = name.replace("/", "").replace("\\", "")
    if not name:
        return f"book{job_id}.pdf"
    return f"{name}{job_id}.pdf"


def reconcile_pages(discovered: list[str], toc_urls: Iterable[str], seed_url: str) -> list[str]:
    """Add same-host TOC pages the crawler did not see.

    Sites that render navigation client-side often give the crawler only a
    bootstrap shell, so the TOC is the better source for them.
    """
    pages = list(discovered)
    known = {page_key(page) for page in pages}
    for url in toc_urls:
        if not is_navigable(url) or not same_host(url, seed_url):
            continue
        candidate = url if urlsplit(url).fragment.startswith("/") else strip_fragment(url)
        key = page_key(candidate)
        if key in known:
            continue
        known.add(key)
        pages.append(candidate)

    if not pages:
        return [seed_url]
    return pages


def order_pages(pages: list[str], toc: TocNode) -> list[str]:
    """Order ``pages`` by a pre-order walk of ``toc``.

    Pages the TOC never reaches keep their relative order at the end. The
    result is always a permutation of ``pages``.
    """
    first_index: dict[str, int] = {}
    for index, page in enumerate(pages):
        first_index.setdefault(page_key(page), index)

    ordered = []
    emitted = set()
    for url in toc.iter_urls():
        index = first_index.get(page_key(url))
        if index is None or index in emitted:
            continue
        emitted.add(index)
        ordered.append(pages[index])

    ordered.extend(page for index, page in enumerate(pages) if index not in emitted)
    return ordered


def save_partial(temp_dir: Path, job_id: str, merger: Merger = merge_files) -> tuple[Path, int]:
    """Merge whatever pages a job rendered so far into ``partial<job_id>.pdf``.

    Returns (output_path, number_of_page_files).

    Raises:
        NoPartialPagesError: If no page file exists.
        MergeError: If the existing files could not be merged.
    """
    temp_dir = Path(temp_dir)
    page_files = []
    if temp_dir.is_dir():
        for path in temp_dir.iterdir():
            match = PAGE_FILE_RE.match(path.name)
            if match and path.is_file():
                page_files.append((int(match.group(1)), path))

    if not page_files:
        raise NoPartialPagesError("No pages were rendered before cancellation")

    files = [path for _, path in sorted(page_files)]
    output = temp_dir / f"partial{job_id}.pdf"
    merger(files, output)
    logger.info("PDF parziale salvato: %s (%d pagine)", output, len(files))
    return output, len(files)


class _Reporter:
    """Holds the latest snapshot of one run and publishes every change."""

    def __init__(self, job_id: str, callback: Optional[ProgressCallback]):
        self.status = JobStatus(job_id=job_id, state=JobState.RUNNING)
        self._callback = callback
        self._lock = threading.Lock()

    def report(self, **changes) -> JobStatus:
        with self._lock:
            return self._publish(**changes)

    def page_rendered(self) -> JobStatus:
        # Increment and publish under one lock so snapshots never go backwards
        with self._lock:
            return self._publish(pages_rendered=self.status.pages_rendered + 1)

    def _publish(self, **changes) -> JobStatus:
        self.status = self.status.evolve(**changes)
        if self._callback:
            self._callback(self.status)
        return self.status


class BookGenerator:
    """Orchestrates the full conversion pipeline for one job at a time."""

    def __init__(
        self,
        validator: UrlValidator,
        discoverer: LinkDiscoverer,
        renderer: PageRenderer,
        fetcher: Optional[HttpFetcher] = None,
        merger: Merger = merge_files,
        extractor_lookup=get_extractor,
        temp_root=config.TEMP_ROOT,
        concurrency: int = config.RENDER_CONCURRENCY,
    ):
        self.validator = validator
        self.discoverer = discoverer
        self.renderer = renderer
        self.fetcher = fetcher or HttpFetcher()
        self.merger = merger
        self.extractor_lookup = extractor_lookup
        self.temp_root = Path(temp_root)
        self.concurrency = concurrency

    def job_dir(self, job_id: str) -> Path:
        return self.temp_root / job_id

    def generate(
        self,
        url: str,
        title: Optional[str],
        job_id: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> JobStatus:
        """Full pipeline: URL → validation → TOC → crawl → render → merge.

        Never raises: every outcome, failures included, is returned as the
        final JobStatus and also published through ``on_progress``.

        Args:
            url: Seed URL of the documentation site.
            title: Book title used for the output file name (optional).
            job_id: Identifier of the job; names the working directory.
            on_progress: Callback receiving every status snapshot.
            cancel_event: Set it to stop the job at the next checkpoint.
        """
        cancel_event = cancel_event or threading.Event()
        reporter = _Reporter(job_id, on_progress)

        try:
            work_path = self.job_dir(job_id)
            work_path.mkdir(parents=True, exist_ok=True)
            logger.info("Job %s: directory di lavoro %s", job_id, work_path)
            reporter.report(state=JobState.RUNNING, pages_total=0, pages_rendered=0)

            return self._run(url, title, job_id, work_path, reporter, cancel_event)

        except JobCancelledError:
            logger.info("Job %s cancellato", job_id)
            return reporter.report(state=JobState.FAILED, error_message=CANCELLED_MESSAGE)
        except ValidationError as e:
            logger.warning("Job %s: URL rifiutato (%s): %s", job_id, e.kind.value, e)
            return reporter.report(state=JobState.FAILED, error_message=str(e))
        except Exception as e:
            logger.exception("Generazione fallita per job %s", job_id)
            return reporter.report(state=JobState.FAILED, error_message=str(e))

    def _run(
        self,
        url: str,
        title: Optional[str],
        job_id: str,
        work_path: Path,
        reporter: _Reporter,
        cancel_event: threading.Event,
    ) -> JobStatus:
        # 1. Validate
        validated = self.validator.validate(url, cancel_event)
        logger.info("Job %s: URL validato %s", job_id, validated)
        _check_cancelled(cancel_event)

        # 2. TOC from the entry page
        html = self._fetch_toc_html(validated, cancel_event)
        toc = self.extractor_lookup(validated).extract(validated, html, cancel_event)
        toc_urls = _unique_pages(toc.iter_urls())
        reporter.report(pages_total=max(1, len(toc_urls)))
        logger.info("Job %s: indice con %d voci", job_id, len(toc_urls))
        _check_cancelled(cancel_event)

        # 3. Crawl
        discovered = self.discoverer.discover(validated, cancel_event)
        _check_cancelled(cancel_event)

        # 4. Reconcile and order
        pages = reconcile_pages(discovered, toc_urls, validated)
        ordered = order_pages(pages, toc)
        total = len(ordered)
        reporter.report(pages_total=total, pages_rendered=0)
        logger.info("Job %s: %d pagine da renderizzare", job_id, total)

        # 5. Render
        outcomes = self._render_all(ordered, work_path, job_id, reporter, cancel_event)
        successes = [o for o in outcomes if o.ok]
        failures = [o for o in outcomes if not o.ok]

        if not successes:
            if failures:
                message = (
                    f"No pages rendered successfully. {len(failures)} page(s) failed: "
                    f"{_describe_failures(failures)}"
                )
            else:
                message = "No pages rendered"
            return reporter.report(state=JobState.FAILED, error_message=message)

        # 6. Merge
        _check_cancelled(cancel_event)
        output = work_path / build_file_name(title, job_id)
        self.merger([o.output_path for o in successes], output)

        error_message = None
        if failures:
            error_message = (
                f"{len(failures)} of {total} pages failed to render: "
                f"{_describe_failures(failures)}"
            )
            logger.warning("Job %s: %s", job_id, error_message)

        logger.info("Job %s: libro creato %s", job_id, output)
        return reporter.report(
            state=JobState.COMPLETED,
            pages_rendered=len(successes),
            output_file_path=str(output),
            error_message=error_message,
        )

    def _fetch_toc_html(self, url: str, cancel_event: threading.Event) -> str:
        """Prefer the rendered DOM (client-side navigation); fall back to GET."""
        try:
            return self.renderer.get_rendered_html(url, cancel_event)
        except JobCancelledError:
            raise
        except Exception as e:
            logger.info("DOM renderizzato non disponibile per %s (%s), uso HTTP GET", url, e)

        try:
            result = self.fetcher.fetch(url, cancel_event)
        except FetchError as e:
            logger.warning("Impossibile scaricare %s per l'indice: %s", url, e)
            return ""
        return result.text if result.ok else ""

    def _render_all(
        self,
        pages: list[str],
        work_path: Path,
        job_id: str,
        reporter: _Reporter,
        cancel_event: threading.Event,
    ) -> list[RenderOutcome]:
        """Render every page with bounded parallelism, in any completion order."""
        outcomes = []
        with ThreadPoolExecutor(
            max_workers=self.concurrency,
            thread_name_prefix=f"render-{job_id}",
        ) as pool:
            futures = [
                pool.submit(self._render_one, index, page, work_path, reporter, cancel_event)
                for index, page in enumerate(pages)
            ]
            try:
                for future in as_completed(futures):
                    outcome = future.result()
                    if outcome is not None:
                        outcomes.append(outcome)
                    if cancel_event.is_set():
                        break
            except BaseException:
                # Ctrl-C or a failing callback: stop queued renders before unwinding
                cancel_event.set()
                raise
            finally:
                if cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()

        _check_cancelled(cancel_event)
        return sorted(outcomes, key=lambda o: o.index)

    def _render_one(
        self,
        index: int,
        url: str,
        work_path: Path,
        reporter: _Reporter,
        cancel_event: threading.Event,
    ) -> Optional[RenderOutcome]:
        if cancel_event.is_set():
            return None

        pdf_path = work_path / PAGE_FILE_NAME.format(index=index)
        try:
            self.renderer.render_page(url, pdf_path, cancel_event)
        except JobCancelledError:
            return None
        except Exception as e:
            logger.warning("Rendering fallito [%d] %s: %s", index, url, e)
            return RenderOutcome(index=index, url=url, error=str(e) or type(e).__name__)

        reporter.page_rendered()
        return RenderOutcome(index=index, url=url, output_path=pdf_path)


def _check_cancelled(cancel_event: threading.Event) -> None:
    if cancel_event.is_set():
        raise JobCancelledError(CANCELLED_MESSAGE)


def _unique_pages(urls: Iterable[str]) -> list[str]:
    """First URL of every distinct page key, in order."""
    seen = set()
    unique = []
    for url in urls:
        key = page_key(url)
        if key not in seen:
            seen.add(key)
            unique.append(url)
    return unique


def _describe_failures(failures: list[RenderOutcome]) -> str:
    return "; ".join(f"{f.url} ({f.error})" for f in failures)
