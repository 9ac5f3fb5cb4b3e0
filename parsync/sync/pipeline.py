"""Concurrent copy pipeline: a fixed worker pool draining a bounded queue."""

import logging
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import SyncConfig
from .operations import SyncOperations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyJob:
    """One file to copy, or a request for one worker to stop."""

    source: Optional[Path] = None
    """File to read"""

    destination: Optional[Path] = None
    """File to write"""

    terminate: bool = False
    """Termination job: carries no paths, stops exactly one worker"""

    def __post_init__(self):
        if not self.terminate and (self.source is None or self.destination is None):
            raise ValueError("A copy job needs both a source and a destination")

    @classmethod
    def termination(cls) -> "CopyJob":
        return cls(terminate=True)


class CopyPipeline:
    """Copies file content and metadata on a pool of worker threads.

    Jobs are handed over through a bounded queue of ``workers *
    queue_factor`` slots, so a fast walker is only slowed down under a
    sustained burst. A failing job is logged and counted; the worker then
    moves on to the next one.

    Examples:
        >>> with CopyPipeline(SyncConfig(workers=2)) as pipeline:
        ...     pipeline.submit(CopyJob(Path("/a/f"), Path("/b/f")))
        >>> pipeline.stats["copies_completed"]
        1
    """

    def __init__(
        self, config: SyncConfig, operations: Optional[SyncOperations] = None
    ):
        """Initialize copy pipeline.

        Args:
            config: Sync configuration (worker count, chunk and queue sizes)
            operations: Filesystem operations (defaults to SyncOperations)
        """
        self.config = config
        self.operations = operations or SyncOperations(config.chunk_size)
        self.jobs: queue.Queue[CopyJob] = queue.Queue(maxsize=config.queue_size)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: list[Future] = []
        self._lock = threading.Lock()
        self.stats = {
            "copies_submitted": 0,
            "copies_completed": 0,
            "copy_errors": 0,
            "bytes_copied": 0,
        }

    @property
    def running(self) -> bool:
        return self._executor is not None

    def start(self) -> None:
        """Start the worker threads."""
        if self.running:
            raise RuntimeError("Copy pipeline is already running")

        logger.debug("Starting %d copy worker(s)", self.config.workers)
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.workers, thread_name_prefix="parsync-copy"
        )
        self._futures = [
            self._executor.submit(self._worker, worker_id)
            for worker_id in range(self.config.workers)
        ]

    def submit(self, job: CopyJob) -> None:
        """Queue a copy job, blocking while the queue is full."""
        if not self.running:
            raise RuntimeError("Copy pipeline is not running")
        if not job.terminate:
            with self._lock:
                self.stats["copies_submitted"] += 1
        self.jobs.put(job)

    def shutdown(self) -> None:
        """Send one termination job per worker and wait for all of them."""
        if self._executor is None:
            return

        for _ in range(self.config.workers):
            self.jobs.put(CopyJob.termination())

        wait(self._futures)
        self._executor.shutdown(wait=True)
        self._executor = None
        logger.debug("All copy workers finished")

        # Workers never raise for a failed job; anything here is a bug
        for future in self._futures:
            future.result()

    def abort(self) -> None:
        """Drop jobs no worker has claimed yet, then shut down."""
        discarded = 0
        while True:
            try:
                job = self.jobs.get_nowait()
            except queue.Empty:
                break
            self.jobs.task_done()
            if not job.terminate:
                discarded += 1
        if discarded:
            logger.warning("Discarded %d pending copy job(s)", discarded)
        self.shutdown()

    def _count(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self.stats[key] += amount

    def _worker(self, worker_id: int) -> None:
        logger.debug("Copy worker %d started", worker_id)
        while True:
            job = self.jobs.get()
            try:
                if job.terminate:
                    logger.debug("Copy worker %d stopping", worker_id)
                    return
                self._run_job(job)
            finally:
                self.jobs.task_done()

    def _run_job(self, job: CopyJob) -> None:
        logger.info("Copying %s to %s", job.source, job.destination)
        try:
            copied = self.operations.copy_file(job.source, job.destination)
        except OSError as e:
            logger.error("Failed to copy %s to %s: %s", job.source, job.destination, e)
            self._count("copy_errors")
            return

        self._count("copies_completed")
        self._count("bytes_copied", copied)

    def __enter__(self) -> "CopyPipeline":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.shutdown()
        else:
            self.abort()
