"""Tests for the command-line entry point and its progress bar."""

from unittest.mock import MagicMock, patch

import pytest

from bookify.cli import main
from bookify.models import JobState, JobStatus
from bookify.progress import ProgressReporter

from conftest import write_pdf


def _run_cli(argv, status):
    with (
        patch("bookify.render.playwright_renderer.PlaywrightRenderer") as MockRenderer,
        patch("bookify.generator.BookGenerator") as MockGenerator,
    ):
        MockGenerator.return_value.generate.return_value = status
        main(argv)
    return MockGenerator, MockRenderer


class TestCli:
    def test_copies_book_to_output(self, tmp_path):
        (tmp_path / "work").mkdir()
        book = write_pdf(tmp_path / "work" / "Docsabc.pdf")
        status = JobStatus(
            job_id="abc", state=JobState.COMPLETED, pages_total=2, pages_rendered=2,
            output_file_path=str(book),
        )
        out = tmp_path / "out" / "docs.pdf"

        MockGenerator, MockRenderer = _run_cli(
            ["https://docs.dev", str(out), "--title", "Docs", "--max-pages", "5"], status,
        )

        assert out.read_bytes() == book.read_bytes()
        args = MockGenerator.return_value.generate.call_args.args
        assert args[:2] == ("https://docs.dev", "Docs")
        MockRenderer.return_value.close.assert_called_once()

    def test_failed_job_exits_1(self):
        status = JobStatus(job_id="abc", state=JobState.FAILED, error_message="Forbidden IP address")
        with pytest.raises(SystemExit) as exc:
            _run_cli(["https://docs.dev"], status)
        assert exc.value.code == 1

    def test_rejects_bad_limits(self):
        with pytest.raises(SystemExit) as exc:
            main(["https://docs.dev", "--max-pages", "0"])
        assert exc.value.code == 2


class TestProgressReporter:
    def test_bar_follows_snapshots(self):
        with patch("bookify.progress.tqdm") as mock_tqdm:
            bar = MagicMock(n=0, total=3)
            bar.update.side_effect = lambda delta: setattr(bar, "n", bar.n + delta)
            mock_tqdm.return_value = bar

            reporter = ProgressReporter()
            reporter.update(JobStatus(job_id="a", state=JobState.RUNNING))
            mock_tqdm.assert_not_called()

            reporter.update(JobStatus(job_id="a", state=JobState.RUNNING, pages_total=3))
            reporter.update(JobStatus(job_id="a", state=JobState.RUNNING, pages_total=5, pages_rendered=2))
            reporter.close()

        mock_tqdm.assert_called_once()
        assert bar.total == 5
        assert bar.n == 2
        bar.close.assert_called_once()
