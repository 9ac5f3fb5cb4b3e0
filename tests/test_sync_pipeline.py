"""Tests for the concurrent copy pipeline."""

import os
import threading
from unittest.mock import Mock

import pytest

from parsync.config import SyncConfig
from parsync.sync.metadata import get_metadata
from parsync.sync.operations import SyncOperations
from parsync.sync.pipeline import CopyJob, CopyPipeline

ATIME_NS = 1_600_000_000_000_000_000
MTIME_NS = 1_500_000_000_000_000_000


@pytest.fixture
def source_files(tmp_path):
    """Create 20 source files of different sizes."""
    source = tmp_path / "src"
    source.mkdir()
    files = []
    for i in range(20):
        path = source / f"file{i:02d}.bin"
        path.write_bytes(bytes([i]) * (i * 1000 + 1))
        os.chmod(path, 0o640)
        os.utime(path, ns=(ATIME_NS + i, MTIME_NS + i))
        files.append(path)
    return files


class TestCopyJob:
    """Tests for CopyJob."""

    def test_termination_job_has_no_paths(self):
        job = CopyJob.termination()
        assert job.terminate is True
        assert job.source is None
        assert job.destination is None

    def test_regular_job(self, tmp_path):
        job = CopyJob(tmp_path / "a", tmp_path / "b")
        assert job.terminate is False

    def test_copy_job_requires_both_paths(self, tmp_path):
        with pytest.raises(ValueError, match="source and a destination"):
            CopyJob(tmp_path / "a")
        with pytest.raises(ValueError):
            CopyJob()


class TestCopyPipeline:
    """Tests for CopyPipeline."""

    def test_queue_is_bounded(self):
        pipeline = CopyPipeline(SyncConfig(workers=3))
        assert pipeline.jobs.maxsize == 30

    def test_submit_requires_running_pipeline(self, tmp_path):
        pipeline = CopyPipeline(SyncConfig(workers=1))
        with pytest.raises(RuntimeError, match="not running"):
            pipeline.submit(CopyJob(tmp_path / "a", tmp_path / "b"))

    def test_start_twice_fails(self):
        pipeline = CopyPipeline(SyncConfig(workers=1))
        pipeline.start()
        try:
            with pytest.raises(RuntimeError, match="already running"):
                pipeline.start()
        finally:
            pipeline.shutdown()

    def test_shutdown_without_start_is_noop(self):
        CopyPipeline(SyncConfig(workers=2)).shutdown()

    def test_drains_more_jobs_than_workers(self, tmp_path, source_files):
        """Every file is copied with content and metadata, whatever the pool size."""
        destination = tmp_path / "dst"
        destination.mkdir()
        config = SyncConfig(workers=3, queue_factor=1, chunk_size=512)

        with CopyPipeline(config) as pipeline:
            for path in source_files:
                pipeline.submit(CopyJob(path, destination / path.name))

        assert pipeline.stats["copies_submitted"] == 20
        assert pipeline.stats["copies_completed"] == 20
        assert pipeline.stats["copy_errors"] == 0
        assert pipeline.stats["bytes_copied"] == sum(
            p.stat().st_size for p in source_files
        )
        for path in source_files:
            copied = destination / path.name
            assert copied.read_bytes() == path.read_bytes()
            assert get_metadata(copied).mtime_ns == get_metadata(path).mtime_ns
            assert get_metadata(copied).permissions == 0o640

    def test_overwrites_existing_destination(self, tmp_path, source_files):
        destination = tmp_path / "existing.bin"
        destination.write_bytes(b"old content that is longer than the source")

        with CopyPipeline(SyncConfig(workers=1)) as pipeline:
            pipeline.submit(CopyJob(source_files[0], destination))

        assert destination.read_bytes() == source_files[0].read_bytes()

    def test_failed_job_does_not_stop_pool(self, tmp_path, source_files):
        destination = tmp_path / "dst"
        destination.mkdir()

        with CopyPipeline(SyncConfig(workers=1)) as pipeline:
            pipeline.submit(CopyJob(tmp_path / "missing", destination / "missing"))
            pipeline.submit(CopyJob(source_files[1], destination / "ok.bin"))

        assert pipeline.stats["copy_errors"] == 1
        assert pipeline.stats["copies_completed"] == 1
        assert (destination / "ok.bin").read_bytes() == source_files[1].read_bytes()

    def test_each_worker_receives_one_termination_job(self):
        config = SyncConfig(workers=4)
        pipeline = CopyPipeline(config)
        pipeline.start()
        pipeline.shutdown()

        assert not pipeline.running
        assert pipeline.jobs.empty()

    def test_workers_run_in_parallel(self, tmp_path):
        """Two workers can hold a job at the same time."""
        both_started = threading.Barrier(2, timeout=5)
        operations = Mock(spec=SyncOperations)

        def copy_file(source, destination):
            both_started.wait()
            return 0

        operations.copy_file.side_effect = copy_file

        with CopyPipeline(SyncConfig(workers=2), operations) as pipeline:
            pipeline.submit(CopyJob(tmp_path / "a", tmp_path / "x"))
            pipeline.submit(CopyJob(tmp_path / "b", tmp_path / "y"))

        assert pipeline.stats["copies_completed"] == 2

    def test_abort_discards_pending_jobs(self, tmp_path):
        release = threading.Event()
        operations = Mock(spec=SyncOperations)

        def copy_file(source, destination):
            release.wait(timeout=5)
            return 0

        operations.copy_file.side_effect = copy_file
        pipeline = CopyPipeline(SyncConfig(workers=1), operations)
        pipeline.start()
        for i in range(5):
            pipeline.submit(CopyJob(tmp_path / f"s{i}", tmp_path / f"d{i}"))

        # Let the in-flight job finish only after the queue was drained
        timer = threading.Timer(0.2, release.set)
        timer.start()
        pipeline.abort()
        timer.join()

        assert not pipeline.running
        assert pipeline.stats["copies_completed"] < 5

    def test_context_manager_aborts_on_exception(self, tmp_path):
        pipeline = CopyPipeline(SyncConfig(workers=2))
        with pytest.raises(KeyError):
            with pipeline:
                raise KeyError("boom")
        assert not pipeline.running
