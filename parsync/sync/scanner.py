"""Source tree traversal for sync operations."""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import ErrorPolicy
from ..exceptions import TraversalError
from .metadata import EntryType

logger = logging.getLogger(__name__)


@dataclass
class SourceEntry:
    """Represents one visited source entry with its lstat snapshot."""

    path: Path
    """Absolute path to the entry"""

    relative_path: str
    """Path relative to the source root ("." for the root itself)"""

    stat: os.stat_result
    """Result of ``lstat`` taken when the entry was visited"""

    @property
    def entry_type(self) -> EntryType:
        return EntryType.from_mode(self.stat.st_mode)

    @classmethod
    def from_path(cls, path: Path, base_path: Path) -> "SourceEntry":
        """Create SourceEntry from a path.

        Args:
            path: Absolute path to the entry
            base_path: Source root for calculating relative paths

        Returns:
            SourceEntry instance

        Raises:
            OSError: If the entry cannot be lstat'ed
        """
        return cls(
            path=path,
            relative_path=os.path.relpath(path, base_path),
            stat=path.lstat(),
        )


class DirectoryScanner:
    """Walks a source tree depth-first, yielding every entry exactly once.

    Directories are yielded before their children and children are
    visited in sorted name order. Symlinks are reported but never
    followed.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> for entry in scanner.walk(Path("/data/src")):
        ...     print(entry.relative_path, entry.entry_type.value)
    """

    def __init__(self, error_policy: ErrorPolicy = ErrorPolicy.ABORT):
        """Initialize directory scanner.

        Args:
            error_policy: What to do when an entry cannot be visited
        """
        self.error_policy = error_policy
        self.errors: list[tuple[Path, OSError]] = []

    def _handle_error(self, path: Path, error: OSError) -> None:
        """Abort or record a traversal error according to the policy.

        Raises:
            TraversalError: With the abort policy
        """
        if self.error_policy == ErrorPolicy.ABORT:
            raise TraversalError(f"Cannot walk {path}: {error}", path=path) from error

        logger.error("Skipping %s: %s", path, error)
        self.errors.append((path, error))

    def walk(
        self, directory: Path, base_path: Optional[Path] = None
    ) -> Iterator[SourceEntry]:
        """Walk ``directory`` depth-first, including ``directory`` itself.

        Pending entries are kept on an explicit stack, so the depth of the
        tree is not bounded by the interpreter recursion limit.

        Args:
            directory: Directory (or entry) to walk
            base_path: Base path for calculating relative paths (defaults to directory)

        Yields:
            SourceEntry for every visited entry

        Raises:
            TraversalError: On an unreadable entry with the abort policy
        """
        if base_path is None:
            base_path = directory
            self.errors = []

        pending = [directory]
        while pending:
            path = pending.pop()
            try:
                entry = SourceEntry.from_path(path, base_path)
            except OSError as e:
                self._handle_error(path, e)
                continue

            yield entry

            if entry.entry_type != EntryType.DIRECTORY:
                continue

            try:
                children = sorted(path.iterdir())
            except OSError as e:
                self._handle_error(path, e)
                continue

            # Reversed so the smallest name is popped first
            pending.extend(reversed(children))
