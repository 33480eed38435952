"""In-memory job tracking for concurrent conversions."""

import threading
from pathlib import Path
from typing import Optional

from bookify.models import JobStatus


class JobRegistry:
    """Thread-safe in-memory job store.

    Holds, per job id, the latest status snapshot, the cancellation event
    and the temp directory. Status state machine:
    Pending → Running → Completed | Failed
    """

    def __init__(self):
        self._statuses: dict[str, JobStatus] = {}
        self._cancel_events: dict[str, threading.Event] = {}
        self._temp_dirs: dict[str, Path] = {}
        self._lock = threading.Lock()

    # --- status ---

    def set_status(self, job_id: str, status: JobStatus) -> None:
        with self._lock:
            self._statuses[job_id] = status

    def advance_status(self, job_id: str, status: JobStatus) -> bool:
        """Store ``status`` for a known job that is not yet terminal.

        Returns False when the update was dropped: the job was removed or
        already reached a terminal state.
        """
        with self._lock:
            current = self._statuses.get(job_id)
            if current is None or current.state.is_terminal:
                return False
            self._statuses[job_id] = status
            return True

    def get_status(self, job_id: str) -> Optional[JobStatus]:
        with self._lock:
            return self._statuses.get(job_id)

    def list_all(self) -> list[JobStatus]:
        with self._lock:
            return sorted(self._statuses.values(), key=lambda s: s.job_id, reverse=True)

    # --- cancellation ---

    def register_cancel_event(self, job_id: str, event: threading.Event) -> None:
        with self._lock:
            self._cancel_events[job_id] = event

    def cancel(self, job_id: str) -> bool:
        """Trigger cancellation once.

        Returns False if the job has no cancellation event or was already
        cancelled.
        """
        with self._lock:
            event = self._cancel_events.get(job_id)
            if event is None or event.is_set():
                return False
            event.set()
            return True

    def is_cancelled(self, job_id: str) -> bool:
        with self._lock:
            event = self._cancel_events.get(job_id)
            return event is not None and event.is_set()

    # --- temp directories ---

    def register_temp_dir(self, job_id: str, path) -> None:
        with self._lock:
            self._temp_dirs[job_id] = Path(path)

    def get_temp_dir(self, job_id: str) -> Optional[Path]:
        with self._lock:
            return self._temp_dirs.get(job_id)

    def remove_job(self, job_id: str) -> bool:
        """Forget a job, cancelling it if it is still running."""
        with self._lock:
            status = self._statuses.pop(job_id, None)
            event = self._cancel_events.pop(job_id, None)
            temp_dir = self._temp_dirs.pop(job_id, None)
        if event is not None:
            event.set()
        return any(x is not None for x in (status, event, temp_dir))
