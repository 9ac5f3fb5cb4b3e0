"""Configuration for sync runs.

All tunables of a run live in a :class:`SyncConfig` value that is passed
to the engine explicitly. Values can also be taken from ``PARSYNC_*``
environment variables; there is no configuration file.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from .exceptions import ParsyncConfigError
from .utils import DEFAULT_CHUNK_SIZE, DEFAULT_QUEUE_FACTOR, DEFAULT_WORKERS

ENV_WORKERS = "PARSYNC_WORKERS"
ENV_CHUNK_SIZE = "PARSYNC_CHUNK_SIZE"
ENV_ON_ERROR = "PARSYNC_ON_ERROR"


class ErrorPolicy(str, Enum):
    """What to do when the source tree cannot be walked."""

    ABORT = "abort"
    """Stop the whole run (default)"""

    CONTINUE = "continue"
    """Log the error, skip the entry and keep walking"""


@dataclass
class SyncConfig:
    """Settings for a single sync run."""

    workers: int = DEFAULT_WORKERS
    """Number of concurrent copy workers"""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    """Block size in bytes used when streaming file content"""

    queue_factor: int = DEFAULT_QUEUE_FACTOR
    """Copy queue capacity per worker"""

    error_policy: ErrorPolicy = ErrorPolicy.ABORT
    """Traversal error policy"""

    dry_run: bool = False
    """Only decide and log, never modify the destination"""

    def __post_init__(self) -> None:
        if not isinstance(self.error_policy, ErrorPolicy):
            try:
                self.error_policy = ErrorPolicy(self.error_policy)
            except ValueError as e:
                raise ParsyncConfigError(
                    f"Unknown error policy: {self.error_policy!r}"
                ) from e
        self.validate()

    @property
    def queue_size(self) -> int:
        """Capacity of the copy job queue."""
        return self.workers * self.queue_factor

    def validate(self) -> None:
        """Check that all values are usable.

        Raises:
            ParsyncConfigError: If a value is out of range
        """
        if self.workers < 1:
            raise ParsyncConfigError("Number of workers must be at least 1")
        if self.chunk_size < 1:
            raise ParsyncConfigError("Chunk size must be at least 1 byte")
        if self.queue_factor < 1:
            raise ParsyncConfigError("Queue factor must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncConfig":
        """Create a config from ``PARSYNC_*`` environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            SyncConfig with defaults for every unset variable
        """
        if environ is None:
            environ = os.environ

        kwargs: dict = {}
        try:
            if environ.get(ENV_WORKERS):
                kwargs["workers"] = int(environ[ENV_WORKERS])
            if environ.get(ENV_CHUNK_SIZE):
                kwargs["chunk_size"] = int(environ[ENV_CHUNK_SIZE])
        except ValueError as e:
            raise ParsyncConfigError(f"Invalid integer in environment: {e}") from e
        if environ.get(ENV_ON_ERROR):
            kwargs["error_policy"] = environ[ENV_ON_ERROR]

        return cls(**kwargs)
