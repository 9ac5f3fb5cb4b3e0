"""Entry metadata access for sync operations."""

import logging
import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class EntryType(str, Enum):
    """Kind of filesystem entry, as seen without following symlinks."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"
    """FIFO, socket or device"""

    @classmethod
    def from_mode(cls, mode: int) -> "EntryType":
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISREG(mode):
            return cls.FILE
        return cls.OTHER


@dataclass(frozen=True)
class EntryMetadata:
    """Snapshot of the metadata that is mirrored for an entry."""

    mtime_ns: int
    """Last modification time (nanoseconds since the epoch)"""

    atime_ns: int
    """Last access time (nanoseconds since the epoch)"""

    uid: int
    """Owner user id"""

    gid: int
    """Owner group id"""

    mode: int
    """Full ``st_mode`` (type and permission bits)"""

    @property
    def permissions(self) -> int:
        """Permission bits including setuid, setgid and sticky."""
        return stat.S_IMODE(self.mode)

    @classmethod
    def from_stat(cls, st: os.stat_result) -> "EntryMetadata":
        return cls(
            mtime_ns=st.st_mtime_ns,
            atime_ns=st.st_atime_ns,
            uid=st.st_uid,
            gid=st.st_gid,
            mode=st.st_mode,
        )


def entry_type(path: PathLike) -> EntryType:
    """Return the type of ``path`` without following a final symlink.

    Raises:
        FileNotFoundError: If nothing exists at ``path``
    """
    return EntryType.from_mode(os.lstat(path).st_mode)


def get_metadata(path: PathLike) -> EntryMetadata:
    """Capture a fresh metadata snapshot of ``path`` (symlinks followed).

    Raises:
        OSError: If ``path`` cannot be stat'ed
    """
    return EntryMetadata.from_stat(os.stat(path))


def set_metadata(path: PathLike, metadata: EntryMetadata) -> None:
    """Apply ``metadata`` to ``path``.

    Timestamps are applied first, then ownership, then the mode, so a
    more permissive mode never becomes visible before the rest is in
    place.

    Raises:
        OSError: On the first step that fails; later steps are not attempted
    """
    os.utime(path, ns=(metadata.atime_ns, metadata.mtime_ns))
    # Not available on Windows
    if hasattr(os, "chown"):
        os.chown(path, metadata.uid, metadata.gid)
    os.chmod(path, metadata.permissions)


def copy_metadata(source: PathLike, destination: PathLike) -> EntryMetadata:
    """Copy the metadata of ``source`` onto ``destination``.

    Returns:
        The metadata that was applied
    """
    logger.info("Copying metadata %s to %s", source, destination)
    metadata = get_metadata(source)
    set_metadata(destination, metadata)
    return metadata
