"""Job service - runs conversions in the background and manages their lifecycle."""

import logging
import shutil
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from bookify import config
from bookify.discovery import LinkDiscoverer
from bookify.errors import MergeError, NoPartialPagesError
from bookify.generator import BookGenerator, save_partial
from bookify.jobs import JobRegistry
from bookify.models import JobState, JobStatus
from bookify.net import HttpFetcher, SystemDnsResolver
from bookify.pdf.merger import merge_files
from bookify.render.base import PageRenderer
from bookify.validator import UrlValidator

logger = logging.getLogger(__name__)

USER_CANCELLED_MESSAGE = "Job was canceled by user"


class CancelResult(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ALREADY_FINISHED = "already_finished"
    CANNOT_CANCEL = "cannot_cancel"


class SaveOutcome(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ALREADY_FINISHED = "already_finished"
    CANNOT_CANCEL = "cannot_cancel"
    NO_PARTIAL_PAGES = "no_partial_pages"
    MERGE_FAILED = "merge_failed"


@dataclass
class SaveResult:
    outcome: SaveOutcome
    message: str = ""
    output_path: Optional[str] = None
    pages_rendered: int = 0
    pages_total: int = 0


def _default_renderer() -> PageRenderer:
    from bookify.render.playwright_renderer import PlaywrightRenderer
    return PlaywrightRenderer()


class BookService:
    """Creates, tracks and cancels conversion jobs.

    Every job runs on its own daemon thread with its own renderer; the
    registry is the only state shared between jobs.
    """

    def __init__(
        self,
        registry: Optional[JobRegistry] = None,
        temp_root=config.TEMP_ROOT,
        renderer_factory: Callable[[], PageRenderer] = _default_renderer,
        fetcher: Optional[HttpFetcher] = None,
        dns_resolver: Optional[SystemDnsResolver] = None,
        merger=merge_files,
        max_pages: int = config.MAX_PAGES,
        max_depth: int = config.MAX_DEPTH,
        cancel_grace_seconds: float = config.CANCEL_GRACE_SECONDS,
    ):
        self.registry = registry or JobRegistry()
        self.temp_root = Path(temp_root)
        self.renderer_factory = renderer_factory
        self.fetcher = fetcher or HttpFetcher()
        self.dns_resolver = dns_resolver or SystemDnsResolver()
        self.merger = merger
        self.max_pages = max_pages
        self.max_depth = max_depth
        self.cancel_grace_seconds = cancel_grace_seconds
        self._threads: dict[str, threading.Thread] = {}
        self._saving: set[str] = set()
        self._lock = threading.Lock()

    # --- queries ---

    def get_status(self, job_id: str) -> Optional[JobStatus]:
        return self.registry.get_status(job_id)

    def list_jobs(self) -> list[JobStatus]:
        return self.registry.list_all()

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[JobStatus]:
        """Block until the job thread ends (or ``timeout``) and return its status."""
        with self._lock:
            thread = self._threads.get(job_id)
        if thread is not None:
            thread.join(timeout)
        return self.registry.get_status(job_id)

    # --- commands ---

    def create_job(self, url: str, title: Optional[str] = None) -> str:
        """Register a job and start converting it in the background."""
        job_id = uuid.uuid4().hex[:12]
        cancel_event = threading.Event()

        self.registry.set_status(job_id, JobStatus(job_id=job_id, state=JobState.PENDING))
        self.registry.register_temp_dir(job_id, self.temp_root / job_id)
        self.registry.register_cancel_event(job_id, cancel_event)

        thread = threading.Thread(
            target=self._run_job,
            args=(job_id, url, title, cancel_event),
            name=f"job-{job_id}",
            daemon=True,
        )
        with self._lock:
            self._threads[job_id] = thread
        thread.start()

        logger.info("Job %s creato per %s", job_id, url)
        return job_id

    def cancel(self, job_id: str) -> CancelResult:
        status = self.registry.get_status(job_id)
        if status is None:
            return CancelResult.NOT_FOUND
        if status.state.is_terminal:
            return CancelResult.ALREADY_FINISHED
        if not self.registry.cancel(job_id):
            return CancelResult.CANNOT_CANCEL

        # The job may have finished or been removed since the first read
        current = self.registry.get_status(job_id)
        if current is None:
            return CancelResult.NOT_FOUND
        cancelled = current.evolve(state=JobState.FAILED, error_message=USER_CANCELLED_MESSAGE)
        if not self.registry.advance_status(job_id, cancelled):
            return CancelResult.ALREADY_FINISHED
        logger.info("Job %s cancellato dall'utente", job_id)
        return CancelResult.OK

    def cancel_and_save(self, job_id: str) -> SaveResult:
        """Stop a running job and complete it with the pages rendered so far."""
        status = self.registry.get_status(job_id)
        if status is None:
            return SaveResult(SaveOutcome.NOT_FOUND, "Job not found")
        if status.state.is_terminal:
            return SaveResult(SaveOutcome.ALREADY_FINISHED, "Job is already finished")

        with self._lock:
            self._saving.add(job_id)
        try:
            if not self.registry.cancel(job_id):
                return SaveResult(
                    SaveOutcome.CANNOT_CANCEL,
                    "Job may have already been canceled or is not running",
                )

            current = self.registry.get_status(job_id)
            if current is None:
                return SaveResult(SaveOutcome.NOT_FOUND, "Job not found")
            if current.state.is_terminal:
                return SaveResult(SaveOutcome.ALREADY_FINISHED, "Job is already finished")

            # In-flight renders may still finish their current page
            self.wait(job_id, self.cancel_grace_seconds)
            status = self.registry.get_status(job_id) or current
            return self._save_partial(job_id, status)
        finally:
            with self._lock:
                self._saving.discard(job_id)

    def remove_job(self, job_id: str, delete_files: bool = False) -> bool:
        temp_dir = self.registry.get_temp_dir(job_id)
        removed = self.registry.remove_job(job_id)
        with self._lock:
            self._threads.pop(job_id, None)
        if delete_files and temp_dir is not None:
            shutil.rmtree(temp_dir, ignore_errors=True)
        return removed

    # --- internals ---

    def _save_partial(self, job_id: str, status: JobStatus) -> SaveResult:
        temp_dir = self.registry.get_temp_dir(job_id)
        if temp_dir is None or not temp_dir.is_dir():
            message = "Job was canceled but no temporary directory found to save partial PDF"
            self.registry.advance_status(job_id, status.evolve(state=JobState.FAILED, error_message=message))
            return SaveResult(SaveOutcome.NO_PARTIAL_PAGES, message, pages_total=status.pages_total)

        try:
            output, count = save_partial(temp_dir, job_id, self.merger)
        except NoPartialPagesError:
            message = "Job was canceled but no PDF files were found to merge"
            self.registry.advance_status(job_id, status.evolve(state=JobState.FAILED, error_message=message))
            return SaveResult(SaveOutcome.NO_PARTIAL_PAGES, message, pages_total=status.pages_total)
        except (MergeError, OSError) as e:
            message = f"Job was canceled but failed to save partial PDF: {e}"
            logger.warning("Job %s: %s", job_id, message)
            self.registry.advance_status(job_id, status.evolve(state=JobState.FAILED, error_message=message))
            return SaveResult(SaveOutcome.MERGE_FAILED, message, pages_total=status.pages_total)

        self.registry.advance_status(
            job_id,
            status.evolve(
                state=JobState.COMPLETED,
                pages_rendered=count,
                output_file_path=str(output),
                error_message=None,
            ),
        )
        return SaveResult(
            SaveOutcome.OK,
            "Job canceled and partial PDF saved",
            output_path=str(output),
            pages_rendered=count,
            pages_total=status.pages_total,
        )

    def _on_progress(self, job_id: str, status: JobStatus) -> None:
        with self._lock:
            saving = job_id in self._saving
        if saving and status.state.is_terminal:
            # cancel_and_save writes the final status itself
            return
        self.registry.advance_status(job_id, status)

    def _build_generator(self, renderer: PageRenderer) -> BookGenerator:
        return BookGenerator(
            validator=UrlValidator(self.dns_resolver, self.fetcher),
            discoverer=LinkDiscoverer(self.fetcher, self.max_pages, self.max_depth),
            renderer=renderer,
            fetcher=self.fetcher,
            merger=self.merger,
            temp_root=self.temp_root,
        )

    def _run_job(self, job_id: str, url: str, title: Optional[str], cancel_event: threading.Event) -> None:
        renderer = None
        try:
            renderer = self.renderer_factory()
            generator = self._build_generator(renderer)
            generator.generate(
                url,
                title,
                job_id,
                on_progress=lambda status: self._on_progress(job_id, status),
                cancel_event=cancel_event,
            )
        except Exception as e:
            logger.exception("Job %s interrotto da un errore inatteso", job_id)
            current = self.registry.get_status(job_id) or JobStatus(job_id=job_id, state=JobState.PENDING)
            self._on_progress(job_id, current.evolve(state=JobState.FAILED, error_message=str(e)))
        finally:
            if renderer is not None:
                try:
                    renderer.close()
                except Exception as e:
                    logger.warning("Chiusura renderer fallita per job %s: %s", job_id, e)
