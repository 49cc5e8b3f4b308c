"""Persistence helpers for the job registry snapshot."""

from .persistence import JobSnapshotStore, SnapshotError, decode_snapshots, write_snapshots

__all__ = ["JobSnapshotStore", "SnapshotError", "decode_snapshots", "write_snapshots"]
