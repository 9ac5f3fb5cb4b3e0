"""Core sync engine for mirroring a source tree onto a destination."""

import logging
import os
import time
from pathlib import Path
from typing import Optional, Union

from ..config import SyncConfig
from ..exceptions import ContentCompareError, TraversalError
from ..output import OutputFormatter
from ..utils import is_within, map_path
from .comparator import compare_files
from .metadata import EntryType
from .operations import SyncOperations
from .pipeline import CopyPipeline
from .reconciler import EntryReconciler, SyncAction, SyncDecision
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)

_ACTION_STATS = {
    SyncAction.CREATE_DIRECTORY: "directories_created",
    SyncAction.CREATE_SYMLINK: "symlinks_created",
    SyncAction.REPLACE_SYMLINK: "symlinks_replaced",
    SyncAction.COPY: "copies",
    SyncAction.UPDATE_METADATA: "metadata_updates",
    SyncAction.SKIP: "skips",
    SyncAction.UNSUPPORTED: "unsupported",
}


class SyncEngine:
    """Core sync engine that orchestrates a one-way mirror run.

    The source tree is walked on the calling thread; each entry is
    reconciled immediately, and changed file content is copied by the
    worker pool of a :class:`CopyPipeline`. ``sync`` returns only after
    every worker has finished.
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            config: Settings for the run (defaults to SyncConfig())
            output: Output formatter for displaying progress/status
        """
        self.config = config or SyncConfig()
        self.output = output or OutputFormatter()
        self.operations = SyncOperations(self.config.chunk_size)

    def _resolve_roots(
        self, source: Union[str, Path], destination: Union[str, Path]
    ) -> tuple[Path, Path]:
        """Make both roots absolute and check that they can be synced.

        Raises:
            ValueError: If the source is missing or not a directory, or the
                destination lies inside the source
        """
        source_root = Path(os.path.abspath(source))
        destination_root = Path(os.path.abspath(destination))

        if not source_root.exists():
            raise ValueError(f"Source directory does not exist: {source_root}")
        if not source_root.is_dir():
            raise ValueError(f"Source path is not a directory: {source_root}")
        if is_within(str(destination_root), str(source_root)):
            raise ValueError(
                f"Destination {destination_root} is inside source {source_root}"
            )
        return source_root, destination_root

    def _create_empty_stats(self) -> dict:
        """Create an empty statistics dictionary.

        Returns:
            Dictionary with zero counts for all stat categories
        """
        stats = {key: 0 for key in _ACTION_STATS.values()}
        stats.update(
            {
                "removed": 0,
                "errors": 0,
                "traversal_errors": 0,
                "copies_completed": 0,
                "copy_errors": 0,
                "bytes_copied": 0,
            }
        )
        return stats

    def _record_decision(self, stats: dict, decision: SyncDecision) -> None:
        stats[_ACTION_STATS[decision.action]] += 1
        if decision.remove_existing:
            stats["removed"] += 1

    def sync(
        self, source: Union[str, Path], destination: Union[str, Path]
    ) -> dict:
        """Mirror ``source`` onto ``destination``.

        Args:
            source: Root of the source tree
            destination: Root of the destination tree (created if missing)

        Returns:
            Dictionary with sync statistics

        Raises:
            ValueError: If the roots cannot be synced
            TraversalError: If the walk fails under the abort policy

        Examples:
            >>> engine = SyncEngine(SyncConfig(workers=2))
            >>> stats = engine.sync("/data/src", "/backup/src")
            >>> print(f"Copied {stats['copies_completed']} files")
        """
        source_root, destination_root = self._resolve_roots(source, destination)
        dry_run = self.config.dry_run

        if not self.output.quiet:
            self.output.info(f"Syncing: {source_root} -> {destination_root}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")

        start_time = time.time()
        stats = self._create_empty_stats()
        scanner = DirectoryScanner(error_policy=self.config.error_policy)
        pipeline = CopyPipeline(self.config, self.operations)
        reconciler = EntryReconciler(
            source_root, destination_root, pipeline, self.operations
        )

        if dry_run:
            self._walk(scanner, reconciler, source_root, stats, dry_run=True)
        else:
            try:
                with pipeline:
                    self._walk(scanner, reconciler, source_root, stats)
            finally:
                for key in ("copies_completed", "copy_errors", "bytes_copied"):
                    stats[key] = pipeline.stats[key]
                # Workers are done; children no longer touch these directories
                stats["errors"] += reconciler.finish_directories()

        stats["traversal_errors"] = len(scanner.errors)
        logger.debug("Sync took %.2fs", time.time() - start_time)

        if not self.output.quiet:
            self._display_summary(stats, dry_run)

        return stats

    def _walk(
        self,
        scanner: DirectoryScanner,
        reconciler: EntryReconciler,
        source_root: Path,
        stats: dict,
        dry_run: bool = False,
    ) -> None:
        """Reconcile every entry of the source tree.

        Errors from a single entry are logged and counted; only a
        TraversalError ends the walk.
        """
        try:
            for entry in scanner.walk(source_root):
                try:
                    decision = reconciler.reconcile(entry, dry_run=dry_run)
                except OSError as e:
                    logger.error("Failed to sync %s: %s", entry.path, e)
                    stats["errors"] += 1
                    continue
                self._record_decision(stats, decision)
        except TraversalError as e:
            logger.critical("Aborting sync: %s", e)
            raise

    def verify(
        self, source: Union[str, Path], destination: Union[str, Path]
    ) -> dict:
        """Compare every regular source file with its mirror, byte by byte.

        A file that cannot be compared is counted in ``verify_errors`` and
        does not stop the pass.

        Args:
            source: Root of the source tree
            destination: Root of the destination tree

        Returns:
            Dictionary with ``verified``, ``verify_mismatches`` and
            ``verify_errors`` counts
        """
        source_root, destination_root = self._resolve_roots(source, destination)
        scanner = DirectoryScanner(error_policy=self.config.error_policy)
        stats = {"verified": 0, "verify_mismatches": 0, "verify_errors": 0}

        for entry in scanner.walk(source_root):
            if entry.entry_type != EntryType.FILE:
                continue
            mirror = Path(
                map_path(str(entry.path), str(source_root), str(destination_root))
            )
            try:
                equal = compare_files(
                    entry.path, mirror, shallow=False, chunk_size=self.config.chunk_size
                )
            except ContentCompareError as e:
                logger.error("Cannot verify %s: %s", entry.relative_path, e)
                stats["verify_errors"] += 1
                continue

            if equal:
                stats["verified"] += 1
            else:
                logger.warning("Mismatch: %s", entry.relative_path)
                stats["verify_mismatches"] += 1

        if not self.output.quiet:
            self.output.print_summary(
                "Verify summary",
                [
                    ("Verified", str(stats["verified"])),
                    ("Mismatches", str(stats["verify_mismatches"])),
                    ("Errors", str(stats["verify_errors"])),
                ],
            )
        return stats

    def _display_summary(self, stats: dict, dry_run: bool) -> None:
        """Display sync summary.

        Args:
            stats: Statistics dictionary
            dry_run: Whether this was a dry run
        """
        title = "Dry run summary" if dry_run else "Sync summary"
        rows = [
            ("Directories created", str(stats["directories_created"])),
            ("Symlinks created", str(stats["symlinks_created"])),
            ("Symlinks replaced", str(stats["symlinks_replaced"])),
            ("Files to copy" if dry_run else "Files queued", str(stats["copies"])),
            ("Metadata updates", str(stats["metadata_updates"])),
            ("Replaced (type changed)", str(stats["removed"])),
            ("Unchanged", str(stats["skips"])),
        ]
        if not dry_run:
            rows.append(("Files copied", str(stats["copies_completed"])))
            rows.append(("Data copied", self.output.format_size(stats["bytes_copied"])))
        if stats["unsupported"]:
            rows.append(("Special files skipped", str(stats["unsupported"])))

        failures = stats["errors"] + stats["copy_errors"] + stats["traversal_errors"]
        if failures:
            rows.append(("Errors", str(failures)))
        self.output.print_summary(title, rows)

        if failures:
            self.output.warning(f"{failures} error(s) occurred, see log for details")
        elif not dry_run:
            self.output.success("Sync complete")
