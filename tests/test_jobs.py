"""Tests for the in-memory job registry."""

import threading

from bookify.jobs import JobRegistry
from bookify.models import JobState, JobStatus


def _status(job_id, state=JobState.RUNNING, **kwargs):
    return JobStatus(job_id=job_id, state=state, **kwargs)


class TestJobRegistry:
    def test_set_and_get(self):
        registry = JobRegistry()
        registry.set_status("a", _status("a", pages_total=4))
        assert registry.get_status("a").pages_total == 4
        assert registry.get_status("missing") is None

    def test_list_all_newest_id_first(self):
        registry = JobRegistry()
        for job_id in ("b", "c", "a"):
            registry.set_status(job_id, _status(job_id))
        assert [s.job_id for s in registry.list_all()] == ["c", "b", "a"]

    def test_advance_status_stops_at_terminal_state(self):
        registry = JobRegistry()
        registry.set_status("a", _status("a"))
        assert registry.advance_status("a", _status("a", JobState.FAILED, error_message="boom"))
        assert not registry.advance_status("a", _status("a", JobState.RUNNING))
        assert registry.get_status("a").state == JobState.FAILED

    def test_advance_status_ignores_removed_job(self):
        registry = JobRegistry()
        registry.set_status("a", _status("a"))
        registry.remove_job("a")
        assert not registry.advance_status("a", _status("a", JobState.FAILED))
        assert registry.get_status("a") is None

    def test_cancel_is_true_only_once(self):
        registry = JobRegistry()
        event = threading.Event()
        registry.register_cancel_event("a", event)

        assert registry.cancel("a") is True
        assert event.is_set()
        assert registry.is_cancelled("a")
        assert registry.cancel("a") is False

    def test_cancel_unknown_job(self):
        registry = JobRegistry()
        assert registry.cancel("nope") is False
        assert not registry.is_cancelled("nope")

    def test_temp_dir(self, tmp_path):
        registry = JobRegistry()
        registry.register_temp_dir("a", str(tmp_path))
        assert registry.get_temp_dir("a") == tmp_path

    def test_remove_job_forgets_everything_and_cancels(self, tmp_path):
        registry = JobRegistry()
        event = threading.Event()
        registry.set_status("a", _status("a"))
        registry.register_cancel_event("a", event)
        registry.register_temp_dir("a", tmp_path)

        assert registry.remove_job("a") is True
        assert event.is_set()
        assert registry.get_status("a") is None
        assert registry.get_temp_dir("a") is None
        assert registry.remove_job("a") is False

    def test_concurrent_updates(self):
        registry = JobRegistry()

        def worker(n):
            for i in range(100):
                registry.set_status(f"{n}-{i}", _status(f"{n}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(registry.list_all()) == 400


class TestJobStatus:
    def test_evolve_returns_new_snapshot(self):
        status = _status("a", pages_total=2)
        newer = status.evolve(pages_rendered=1)
        assert status.pages_rendered == 0
        assert newer.pages_rendered == 1
        assert newer.progress_percent == 50.0

    def test_to_dict_uses_api_names(self):
        data = _status("a", JobState.COMPLETED, output_file_path="/tmp/x.pdf").to_dict()
        assert data["jobId"] == "a"
        assert data["state"] == "Completed"
        assert data["outputFilePath"] == "/tmp/x.pdf"

    def test_terminal_states(self):
        assert JobState.COMPLETED.is_terminal
        assert JobState.FAILED.is_terminal
        assert not JobState.PENDING.is_terminal
        assert not JobState.RUNNING.is_terminal
