"""Progress reporting for the command-line conversion."""

from tqdm import tqdm

from bookify.models import JobState, JobStatus


class ProgressReporter:
    """Wraps tqdm for page-level progress reporting.

    The bar is created on the first snapshot that knows the page count and
    resized when discovery changes it.
    """

    def __init__(self):
        self._bar = None

    def update(self, status: JobStatus) -> None:
        """Feed a job snapshot to the bar."""
        if status.state != JobState.RUNNING or status.pages_total <= 0:
            return
        if self._bar is None:
            self._bar = tqdm(
                total=status.pages_total,
                desc="Rendering",
                unit="pag",
                bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} pagine [{elapsed}<{remaining}]",
            )
        if self._bar.total != status.pages_total:
            self._bar.total = status.pages_total
            self._bar.refresh()
        delta = status.pages_rendered - self._bar.n
        if delta > 0:
            self._bar.update(delta)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
