"""Snapshot export/import package."""

from finance_tracker.snapshot.snapshot_io import (
    ImportMode,
    SnapshotFileError,
    SnapshotIO,
)

__all__ = ["ImportMode", "SnapshotFileError", "SnapshotIO"]
