"""Exceptions raised by parsync."""

from pathlib import Path
from typing import Optional, Union


class ParsyncError(Exception):
    """Base exception for all parsync errors."""


class ParsyncConfigError(ParsyncError):
    """Raised when a sync configuration value is invalid."""


class TraversalError(ParsyncError):
    """Raised when the source tree cannot be walked completely.

    A partially walked tree would produce an untrustworthy mirror, so the
    default policy treats this as fatal for the whole run.
    """

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = path


class ContentCompareError(ParsyncError):
    """Raised when a byte-by-byte comparison cannot open or read a file."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = path
