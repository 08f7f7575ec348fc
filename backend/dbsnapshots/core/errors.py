"""Exception types raised by snapshot plans, drivers and the registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from dbsnapshots.core.executor import CommandResult


class SnapshotError(Exception):
    """Base class for all db-snapshots errors."""


class ConfigurationError(SnapshotError, ValueError):
    """Configuration is missing, malformed or contradictory. Never retried."""


class ExecutionError(SnapshotError, RuntimeError):
    """An external command (dump, restore, compression) exited unsuccessfully."""

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        result: Optional["CommandResult"] = None,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.result = result
