"""Equality checks between source and destination entries.

The checks are tiered by cost: size first, then full metadata, and only
on request the file content itself.
"""

import os
from pathlib import Path
from typing import Optional

from ..exceptions import ContentCompareError
from ..utils import DEFAULT_CHUNK_SIZE
from .metadata import PathLike, get_metadata


def _stat_or_none(path: PathLike) -> Optional[os.stat_result]:
    try:
        return os.stat(path)
    except FileNotFoundError:
        return None


def _same_path(first: PathLike, second: PathLike) -> bool:
    return os.fspath(first) == os.fspath(second)


def equal_size(first: PathLike, second: PathLike) -> bool:
    """Compare the byte lengths of two entries.

    Two missing entries count as equal; one missing entry as unequal.
    """
    if _same_path(first, second):
        return True

    stat1 = _stat_or_none(first)
    stat2 = _stat_or_none(second)
    if stat1 is None or stat2 is None:
        return stat1 is None and stat2 is None

    return stat1.st_size == stat2.st_size


def equal_metadata(first: PathLike, second: PathLike) -> bool:
    """Compare times, ownership and mode of two entries.

    Uses the same nonexistence rule as :func:`equal_size`.
    """
    if _same_path(first, second):
        return True

    try:
        metadata1 = get_metadata(first)
    except FileNotFoundError:
        metadata1 = None
    try:
        metadata2 = get_metadata(second)
    except FileNotFoundError:
        metadata2 = None

    if metadata1 is None or metadata2 is None:
        return metadata1 is None and metadata2 is None

    return metadata1 == metadata2


def equal_content(
    first: PathLike, second: PathLike, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> bool:
    """Compare two files byte by byte.

    Both files are streamed in ``chunk_size`` blocks; the comparison stops
    at the first differing block.

    Raises:
        ContentCompareError: If either file cannot be opened or read
    """
    try:
        with open(first, "rb") as f1, open(second, "rb") as f2:
            while True:
                block1 = f1.read(chunk_size)
                block2 = f2.read(chunk_size)
                if block1 != block2:
                    return False
                if not block1:
                    return True
    except OSError as e:
        failed = Path(e.filename) if e.filename else Path(first)
        raise ContentCompareError(
            f"Cannot compare {first} and {second}: {e}", path=failed
        ) from e


def compare_files(
    first: PathLike,
    second: PathLike,
    shallow: bool = True,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> bool:
    """Compare two files.

    Args:
        first: First file
        second: Second file
        shallow: Only compare metadata if True, metadata and content otherwise
        chunk_size: Block size for the content comparison

    Returns:
        True if the files are considered equal
    """
    if shallow:
        return equal_metadata(first, second)
    return equal_metadata(first, second) and equal_content(first, second, chunk_size)
