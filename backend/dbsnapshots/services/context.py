"""Shared collaborators handed to every plan, snapshot and group."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from dbsnapshots.core.config import SnapshotsSettings
from dbsnapshots.core.database import StatementRunner
from dbsnapshots.core.executor import CommandExecutor
from dbsnapshots.core.listeners import NullListener, SnapshotListener
from dbsnapshots.core.storage import BlobStore, LocalDiskStore


# One lock per local root, shared by every context that works in it
_scratch_locks: Dict[str, "threading.RLock"] = {}
_scratch_locks_guard = threading.Lock()


def scratch_lock_for(root: str) -> "threading.RLock":
    key = os.path.realpath(root)
    with _scratch_locks_guard:
        lock = _scratch_locks.get(key)
        if lock is None:
            lock = _scratch_locks[key] = threading.RLock()
        return lock


@dataclass
class SnapshotContext:
    """Settings plus the archive tier, local tier, executor and listener.

    The local tier root doubles as the scratch area for credential files and
    decompressed dumps; cached snapshots live under `local_path` inside it.
    """

    settings: SnapshotsSettings
    archive_store: BlobStore
    local_store: BlobStore
    executor: CommandExecutor = field(default_factory=CommandExecutor)
    listener: SnapshotListener = field(default_factory=NullListener)
    statements: Optional[StatementRunner] = None
    clock: Callable[[], datetime] = datetime.now

    def __post_init__(self) -> None:
        if self.statements is None:
            self.statements = StatementRunner(self.settings.connections)

    @classmethod
    def from_settings(cls, settings: SnapshotsSettings, **overrides: Any) -> "SnapshotContext":
        fs = settings.filesystem
        overrides.setdefault("archive_store", LocalDiskStore(fs.archive_root))
        overrides.setdefault("local_store", LocalDiskStore(fs.local_root))
        return cls(settings=settings, **overrides)

    @property
    def archive_path(self) -> str:
        return self.settings.filesystem.archive_path.rstrip("/")

    @property
    def local_path(self) -> str:
        return self.settings.filesystem.local_path.rstrip("/")

    @property
    def scratch_lock(self) -> "threading.RLock":
        """Serializes create and load work that shares the local tier."""
        return scratch_lock_for(self.local_store.path(""))
