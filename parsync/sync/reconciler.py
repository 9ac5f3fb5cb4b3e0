"""Per-entry reconciliation: decide and apply what one source entry needs."""

import logging
import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from ..utils import is_within, map_path
from .comparator import equal_metadata, equal_size
from .metadata import EntryType
from .operations import SyncOperations
from .pipeline import CopyJob
from .scanner import SourceEntry

logger = logging.getLogger(__name__)


class SyncAction(str, Enum):
    """Actions that can be taken for one entry."""

    CREATE_DIRECTORY = "create_directory"
    """Create the destination directory and copy its metadata"""

    CREATE_SYMLINK = "create_symlink"
    """Create the destination symlink"""

    REPLACE_SYMLINK = "replace_symlink"
    """Recreate a destination symlink that points elsewhere"""

    COPY = "copy"
    """Queue a full content and metadata copy"""

    UPDATE_METADATA = "update_metadata"
    """Copy metadata only"""

    SKIP = "skip"
    """Destination already matches"""

    UNSUPPORTED = "unsupported"
    """Special file that is not mirrored"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync one entry."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    source: Path
    """Source entry"""

    destination: Path
    """Mirrored destination path"""

    relative_path: str
    """Path relative to the roots"""

    entry_type: EntryType
    """Type of the source entry"""

    remove_existing: bool = False
    """Destination has a different type and must be removed first"""

    symlink_target: Optional[str] = None
    """Rewritten target for symlink actions"""


class CopyJobSink(Protocol):
    def submit(self, job: CopyJob) -> None: ...


class EntryReconciler:
    """Makes one destination entry match its source entry.

    Decisions are evaluated in a fixed precedence: a destination of the
    wrong type is removed first, then directories, symlinks and regular
    files are handled. File content is never copied here; a ``COPY``
    decision is handed to the copy pipeline.

    Directory metadata is not applied when the directory is visited:
    writing its children would change its mtime again, and a read-only
    mode would block them. Such directories are kept writable and queued
    in ``pending_directories`` until :meth:`finish_directories` runs.
    """

    def __init__(
        self,
        source_root: Path,
        destination_root: Path,
        pipeline: CopyJobSink,
        operations: Optional[SyncOperations] = None,
    ):
        """Initialize entry reconciler.

        Args:
            source_root: Root of the source tree
            destination_root: Root of the destination tree
            pipeline: Receives copy jobs for files whose content changed
            operations: Filesystem operations (defaults to SyncOperations)
        """
        self.source_root = source_root
        self.destination_root = destination_root
        self.pipeline = pipeline
        self.operations = operations or SyncOperations()
        self.pending_directories: list[tuple[Path, Path]] = []

    def destination_for(self, source: Path) -> Path:
        return Path(
            map_path(str(source), str(self.source_root), str(self.destination_root))
        )

    def rewrite_symlink_target(self, target: str) -> str:
        """Remap an absolute target inside the source root to the destination root.

        Relative targets and targets outside the source tree are kept as is.
        """
        if os.path.isabs(target) and is_within(target, str(self.source_root)):
            return map_path(target, str(self.source_root), str(self.destination_root))
        return target

    def decide(self, entry: SourceEntry) -> SyncDecision:
        """Determine the single action ``entry`` requires.

        Args:
            entry: Visited source entry

        Returns:
            SyncDecision for this entry

        Raises:
            OSError: If a symlink target cannot be read
        """
        destination = self.destination_for(entry.path)

        try:
            existing: Optional[EntryType] = EntryType.from_mode(
                os.lstat(destination).st_mode
            )
        except (FileNotFoundError, NotADirectoryError):
            existing = None

        remove_existing = existing is not None and existing != entry.entry_type
        if remove_existing:
            existing = None

        def decision(
            action: SyncAction, reason: str, symlink_target: Optional[str] = None
        ) -> SyncDecision:
            return SyncDecision(
                action=action,
                reason=reason,
                source=entry.path,
                destination=destination,
                relative_path=entry.relative_path,
                entry_type=entry.entry_type,
                remove_existing=remove_existing,
                symlink_target=symlink_target,
            )

        if entry.entry_type == EntryType.DIRECTORY:
            if existing is None:
                return decision(SyncAction.CREATE_DIRECTORY, "New directory")
            if not equal_metadata(entry.path, destination):
                return decision(
                    SyncAction.UPDATE_METADATA, "Directory metadata differs"
                )
            return decision(SyncAction.SKIP, "Directory metadata identical")

        if entry.entry_type == EntryType.SYMLINK:
            target = self.rewrite_symlink_target(os.readlink(entry.path))
            if existing is None:
                return decision(SyncAction.CREATE_SYMLINK, "New symlink", target)
            current = os.readlink(destination)
            if current != target:
                reason = f"Symlink points to {current}, expected {target}"
                return decision(SyncAction.REPLACE_SYMLINK, reason, target)
            return decision(SyncAction.SKIP, "Symlink target identical", target)

        if entry.entry_type == EntryType.FILE:
            if existing is None:
                return decision(SyncAction.COPY, "New file")
            if not equal_size(entry.path, destination):
                return decision(SyncAction.COPY, "File size differs")
            if not equal_metadata(entry.path, destination):
                return decision(
                    SyncAction.UPDATE_METADATA, "Same size but metadata differs"
                )
            return decision(
                SyncAction.SKIP, "Files are identical (same size and metadata)"
            )

        return decision(SyncAction.UNSUPPORTED, "Special files are not mirrored")

    def apply(self, decision: SyncDecision) -> None:
        """Carry out ``decision``.

        Raises:
            OSError: If a synchronous filesystem operation fails
            ValueError: If a symlink decision carries no target
        """
        if decision.action == SyncAction.SKIP:
            return
        if decision.action == SyncAction.UNSUPPORTED:
            logger.warning("Skipping special file: %s", decision.source)
            return

        if decision.remove_existing:
            self.operations.remove(decision.destination)

        if decision.action == SyncAction.CREATE_DIRECTORY:
            mode = stat.S_IMODE(os.lstat(decision.source).st_mode)
            self.operations.create_directory(decision.destination, mode)
            self.pending_directories.append((decision.source, decision.destination))
        elif decision.action in (
            SyncAction.CREATE_SYMLINK,
            SyncAction.REPLACE_SYMLINK,
        ):
            if decision.symlink_target is None:
                raise ValueError(f"No symlink target for {decision.relative_path}")
            if decision.action == SyncAction.CREATE_SYMLINK:
                self.operations.create_symlink(
                    decision.destination, decision.symlink_target
                )
            else:
                self.operations.replace_symlink(
                    decision.destination, decision.symlink_target
                )
        elif decision.action == SyncAction.UPDATE_METADATA:
            if decision.entry_type == EntryType.DIRECTORY:
                self.operations.ensure_writable(decision.destination)
                self.pending_directories.append(
                    (decision.source, decision.destination)
                )
            else:
                self.operations.copy_metadata(decision.source, decision.destination)
        elif decision.action == SyncAction.COPY:
            self.pipeline.submit(CopyJob(decision.source, decision.destination))

    def reconcile(self, entry: SourceEntry, dry_run: bool = False) -> SyncDecision:
        """Decide and, unless ``dry_run``, apply the action for ``entry``.

        Raises:
            OSError: If deciding or applying fails
        """
        logger.info("Checking: %s", entry.path)
        decision = self.decide(entry)
        if decision.action != SyncAction.SKIP:
            logger.info(
                "%s%s: %s (%s)",
                "[dry run] " if dry_run else "",
                decision.relative_path,
                decision.action.value,
                decision.reason,
            )
        if not dry_run:
            self.apply(decision)
        return decision

    def finish_directories(self) -> int:
        """Copy metadata onto queued directories, deepest first.

        Must run after every copy into those directories has finished.

        Returns:
            Number of directories whose metadata could not be copied
        """
        failures = 0
        # Pre-order reversed: every directory comes after its descendants
        while self.pending_directories:
            source, destination = self.pending_directories.pop()
            try:
                self.operations.copy_metadata(source, destination)
            except OSError as e:
                logger.error("Failed to copy metadata to %s: %s", destination, e)
                failures += 1
        return failures
