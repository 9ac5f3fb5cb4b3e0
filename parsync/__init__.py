"""parsync - mirror a directory tree, copying changed files in parallel."""

from .config import ErrorPolicy, SyncConfig
from .exceptions import (
    ContentCompareError,
    ParsyncConfigError,
    ParsyncError,
    TraversalError,
)
from .sync import SyncEngine

__version__ = "0.1.0"

__all__ = [
    "SyncEngine",
    "SyncConfig",
    "ErrorPolicy",
    "ParsyncError",
    "ParsyncConfigError",
    "TraversalError",
    "ContentCompareError",
]
