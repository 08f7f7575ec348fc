"""Listener interface for operator messages and transfer progress."""

from __future__ import annotations

from typing import Callable, Optional, Protocol


class SnapshotListener(Protocol):
    def on_message(self, message: str) -> None:
        """Receive a human-readable progress message."""

    def on_progress(self, transferred: int, total: int) -> None:
        """Receive byte progress for a transfer."""


class NullListener:
    """Listener that discards everything."""

    def on_message(self, message: str) -> None:
        return

    def on_progress(self, transferred: int, total: int) -> None:
        return


class CallbackListener:
    """Adapts plain callables to `SnapshotListener`; either may be omitted."""

    def __init__(
        self,
        messages: Optional[Callable[[str], None]] = None,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        self._messages = messages
        self._progress = progress

    def on_message(self, message: str) -> None:
        if self._messages is not None:
            self._messages(message)

    def on_progress(self, transferred: int, total: int) -> None:
        if self._progress is not None:
            self._progress(transferred, total)
