"""Blob storage tiers.

Both the archive tier (durable) and the local tier (staging + download cache)
are addressed with forward-slash relative paths. `LocalDiskStore` backs a tier
with a directory; other backends only need to implement `BlobStore`.
"""

from __future__ import annotations

import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, List, Union


logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

Content = Union[bytes, str, BinaryIO]


class BlobStore(ABC):
    """Minimal blob storage contract used by plans and snapshots."""

    @abstractmethod
    def put(self, path: str, content: Content) -> None:
        """Write bytes, text or the remainder of a binary stream to `path`."""

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Return the full content stored at `path`."""

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """Open `path` for binary streaming reads."""

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Delete `path`; returns False when nothing was deleted."""

    @abstractmethod
    def list(self, prefix: str = "") -> List[str]:
        """Recursively list file paths under `prefix`, sorted."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Whether a file exists at `path`."""

    @abstractmethod
    def size(self, path: str) -> int:
        """Byte length of the file at `path`."""

    @abstractmethod
    def path(self, path: str) -> str:
        """Local filesystem path for `path`, for handing to external commands."""

    @abstractmethod
    def make_directory(self, path: str) -> None:
        """Ensure a directory exists at `path`."""


class LocalDiskStore(BlobStore):
    """Blob store rooted at a local directory."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def path(self, path: str) -> str:
        return str(self._resolve(path))

    def make_directory(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)

    def put(self, path: str, content: Content) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            target.write_text(content, encoding="utf-8")
        elif isinstance(content, (bytes, bytearray)):
            target.write_bytes(bytes(content))
        else:
            with open(target, "wb") as fh:
                shutil.copyfileobj(content, fh, CHUNK_SIZE)

    def get(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def open(self, path: str) -> BinaryIO:
        return open(self._resolve(path), "rb")

    def delete(self, path: str) -> bool:
        target = self._resolve(path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("store_delete_failed | root=%s path=%s error=%s", self.root, path, exc)
            return False
        return True

    def list(self, prefix: str = "") -> List[str]:
        base = self._resolve(prefix) if prefix else self.root
        if not base.is_dir():
            return []
        files: List[str] = []
        for dirpath, _, filenames in os.walk(base):
            for filename in filenames:
                full = Path(dirpath) / filename
                files.append(full.relative_to(self.root).as_posix())
        return sorted(files)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def size(self, path: str) -> int:
        return self._resolve(path).stat().st_size

    def __repr__(self) -> str:
        return f"<LocalDiskStore root={self.root}>"
