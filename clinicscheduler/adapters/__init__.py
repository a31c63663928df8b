"""
Adapters layer - External integrations (file persistence).
"""

from .file_store import SchedulerFileStore, SchedulerStateRecord, SnapshotRecord

__all__ = ["SchedulerFileStore", "SchedulerStateRecord", "SnapshotRecord"]
