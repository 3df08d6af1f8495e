"""Snapshot persistence."""

from .storage import SnapshotStorage

__all__ = ["SnapshotStorage"]
