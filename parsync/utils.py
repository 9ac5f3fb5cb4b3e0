"""Utility functions and constants for parsync."""

import os

# =============================================================================
# Constants for sync operations
# =============================================================================

# Number of concurrent copy workers
DEFAULT_WORKERS: int = 4

# Block size for streaming file content (64 KB)
DEFAULT_CHUNK_SIZE: int = 64 * 1024

# Copy queue capacity per worker
DEFAULT_QUEUE_FACTOR: int = 10


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Path utilities
# =============================================================================


def is_within(path: str, root: str) -> bool:
    """Check whether ``path`` equals ``root`` or lies below it.

    Both arguments are compared after normalization, without touching
    the filesystem.

    Examples:
        >>> is_within("/data/src/a.txt", "/data/src")
        True
        >>> is_within("/data/src2/a.txt", "/data/src")
        False
    """
    path = os.path.normpath(path)
    root = os.path.normpath(root)
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        # Mixed absolute/relative paths or different drives
        return False


def map_path(path: str, source_root: str, destination_root: str) -> str:
    """Map a path below ``source_root`` to the same place below ``destination_root``.

    The mapping is computed from the relative path, so a destination root
    string that happens to occur inside a source path cannot corrupt it.

    Args:
        path: Path at or below the source root
        source_root: Root of the source tree
        destination_root: Root of the destination tree

    Returns:
        The mirrored destination path

    Examples:
        >>> map_path("/a/d/f.txt", "/a", "/b")
        '/b/d/f.txt'
        >>> map_path("/a", "/a", "/b")
        '/b'
    """
    relative = os.path.relpath(path, source_root)
    if relative == os.curdir:
        return os.path.normpath(destination_root)
    return os.path.join(os.path.normpath(destination_root), relative)
