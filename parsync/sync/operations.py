"""Filesystem operations used to bring the destination in line."""

import logging
import os
import shutil
import stat
from pathlib import Path

from ..utils import DEFAULT_CHUNK_SIZE
from .metadata import EntryMetadata, copy_metadata

logger = logging.getLogger(__name__)


class SyncOperations:
    """Mutating filesystem primitives with a common interface."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """Initialize sync operations.

        Args:
            chunk_size: Block size in bytes for streaming file content
        """
        self.chunk_size = chunk_size

    def copy_file_data(self, source: Path, destination: Path) -> int:
        """Copy the full content of ``source`` over ``destination``.

        The destination is created or truncated, and its content is
        flushed and fsynced before it is closed. A destination left
        read-only by an earlier copy is made owner-writable first; the
        metadata copy that follows restores its mode.

        Args:
            source: File to read
            destination: File to write

        Returns:
            Number of bytes copied

        Raises:
            OSError: If a file cannot be opened, read, written or synced
        """
        logger.info("Copying file %s to %s...", source, destination)
        copied = 0
        with open(source, "rb") as src, self._open_for_writing(destination) as dst:
            while True:
                block = src.read(self.chunk_size)
                if not block:
                    break
                dst.write(block)
                copied += len(block)
            dst.flush()
            os.fsync(dst.fileno())
        return copied

    def _open_for_writing(self, destination: Path):
        try:
            return open(destination, "wb")
        except PermissionError:
            if not destination.is_file() or destination.is_symlink():
                raise
        self.ensure_writable(destination)
        return open(destination, "wb")

    def ensure_writable(self, destination: Path) -> None:
        """Let the owner write to ``destination`` (and enter it, for a directory)."""
        st = os.stat(destination)
        required = stat.S_IRWXU if stat.S_ISDIR(st.st_mode) else stat.S_IWUSR
        mode = stat.S_IMODE(st.st_mode)
        if mode & required != required:
            logger.debug("Making %s owner-writable", destination)
            os.chmod(destination, mode | required)

    def copy_file(self, source: Path, destination: Path) -> int:
        """Copy content, then metadata, of one file.

        Returns:
            Number of bytes copied
        """
        copied = self.copy_file_data(source, destination)
        copy_metadata(source, destination)
        return copied

    def copy_metadata(self, source: Path, destination: Path) -> EntryMetadata:
        return copy_metadata(source, destination)

    def create_directory(self, destination: Path, mode: int) -> None:
        """Create ``destination`` with permission bits ``mode`` plus owner rwx.

        Missing parents of the destination are created as well. The exact
        mode and times are applied later with :meth:`copy_metadata`, once
        the children have been written.
        """
        logger.info("Creating directory: %s", destination)
        os.makedirs(destination, mode=mode | stat.S_IRWXU, exist_ok=True)

    def create_symlink(self, destination: Path, target: str) -> None:
        logger.info("Creating symlink: %s -> %s", destination, target)
        os.symlink(target, destination)

    def replace_symlink(self, destination: Path, target: str) -> None:
        logger.info("Replacing symlink: %s -> %s", destination, target)
        os.remove(destination)
        os.symlink(target, destination)

    def remove(self, destination: Path) -> None:
        """Remove ``destination`` and, for a real directory, its whole subtree."""
        logger.info(
            "Removing destination %s, different type from source...", destination
        )
        if destination.is_dir() and not destination.is_symlink():
            shutil.rmtree(destination)
        else:
            destination.unlink()
