"""Sync engine for parsync - one-way tree mirroring with parallel copies."""

from .comparator import compare_files, equal_content, equal_metadata, equal_size
from .engine import SyncEngine
from .metadata import (
    EntryMetadata,
    EntryType,
    copy_metadata,
    entry_type,
    get_metadata,
    set_metadata,
)
from .operations import SyncOperations
from .pipeline import CopyJob, CopyPipeline
from .reconciler import EntryReconciler, SyncAction, SyncDecision
from .scanner import DirectoryScanner, SourceEntry

__all__ = [
    "SyncEngine",
    "SyncOperations",
    "SyncAction",
    "SyncDecision",
    "EntryReconciler",
    "CopyJob",
    "CopyPipeline",
    "DirectoryScanner",
    "SourceEntry",
    "EntryMetadata",
    "EntryType",
    "copy_metadata",
    "entry_type",
    "get_metadata",
    "set_metadata",
    "compare_files",
    "equal_content",
    "equal_metadata",
    "equal_size",
]
