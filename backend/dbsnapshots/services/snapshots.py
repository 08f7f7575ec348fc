"""A single snapshot artifact: archive copy, optional local cache copy."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from dbsnapshots.core.errors import ExecutionError
from dbsnapshots.core.executor import Command
from dbsnapshots.core.storage import CHUNK_SIZE

if TYPE_CHECKING:  # pragma: no cover
    from dbsnapshots.services.plans import SnapshotPlan


logger = logging.getLogger(__name__)

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(size: int) -> str:
    """Human-readable size in base-1024 units, two decimals at most."""
    value = float(size)
    unit = 0
    while value > 1024 and unit < len(SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    number = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{number} {SIZE_UNITS[unit]}"


class Snapshot:
    """One dump artifact owned by a plan.

    Nothing about a snapshot is persisted separately: the archive tier holds
    the artifact and the plan holds the ordered list of snapshot objects.
    """

    def __init__(self, file_name: str, date: datetime, plan: "SnapshotPlan") -> None:
        self.file_name = file_name
        self.date = date
        self.plan = plan

    def __repr__(self) -> str:
        return f"<Snapshot plan={self.plan.name} file={self.file_name}>"

    @property
    def archive_file(self) -> str:
        return f"{self.plan.archive_path}/{self.file_name}"

    @property
    def local_file(self) -> str:
        return f"{self.plan.local_path}/{self.file_name}"

    def local_file_path(self) -> str:
        return self.plan.local_store.path(self.local_file)

    def exists_locally(self) -> bool:
        return self.plan.local_store.exists(self.local_file)

    def get_size(self) -> int:
        return self.plan.archive_store.size(self.archive_file)

    def get_formatted_size(self) -> str:
        return format_bytes(self.get_size())

    def download(self, use_local_copy: bool = False, force_download: bool = False) -> Dict[str, Any]:
        """Make sure the local cache holds this snapshot.

        - `force_download`: always transfer, overwriting any cached copy.
        - otherwise an existing cached copy is reused as-is.
        - `use_local_copy`: never contact the archive tier; a missing cached
          copy raises `FileNotFoundError`.
        """
        info: Dict[str, Any] = {
            "downloaded": False,
            "file_name": self.file_name,
            "local_path": self.local_file_path(),
        }

        if not force_download and self.exists_locally():
            self.plan.message(f"Using cached copy of {self.file_name}")
            info["size"] = self.plan.local_store.size(self.local_file)
            return info

        if use_local_copy and not force_download:
            raise FileNotFoundError(f"No local copy of {self.file_name} exists in {self.plan.local_path}")

        self.plan.message(f"Downloading {self.archive_file}")
        info["size"] = self._transfer()
        info["downloaded"] = True
        logger.info(
            "snapshot_downloaded | plan=%s file=%s bytes=%s",
            self.plan.name,
            self.file_name,
            info["size"],
        )
        return info

    def _transfer(self) -> int:
        archive = self.plan.archive_store
        listener = self.plan.context.listener
        total = archive.size(self.archive_file)
        self.plan.local_store.make_directory(self.plan.local_path)
        target = self.local_file_path()

        transferred = 0
        listener.on_progress(transferred, total)
        try:
            with archive.open(self.archive_file) as src, open(target, "wb") as dst:
                for chunk in iter(lambda: src.read(CHUNK_SIZE), b""):
                    dst.write(chunk)
                    transferred += len(chunk)
                    listener.on_progress(transferred, total)
        except OSError:
            self.plan.local_store.delete(self.local_file)
            raise
        if transferred != total:
            # archive changed while copying; report what actually landed
            listener.on_progress(transferred, transferred)
        return transferred

    def remove(self) -> bool:
        """Delete from the archive tier and the local cache; True if the archive copy went away."""
        deleted = self.plan.archive_store.delete(self.archive_file)
        if self.exists_locally():
            self.plan.local_store.delete(self.local_file)
        if self in self.plan.snapshots:
            self.plan.snapshots.remove(self)
        logger.info("snapshot_removed | plan=%s file=%s archive_deleted=%s", self.plan.name, self.file_name, deleted)
        return deleted

    def load(
        self,
        use_local_copy: bool = False,
        force_download: bool = False,
        keep_cached: Optional[bool] = None,
        drop_tables: bool = False,
    ) -> Dict[str, Any]:
        """Download (as needed) and restore this snapshot into the plan's connection.

        A copy downloaded for this load is dropped from the cache afterwards
        unless `keep_cached` (default: the `cache_by_default` setting) is set.
        Tables are only dropped once the dump is ready to be restored.
        """
        with self.plan.context.scratch_lock:
            info = self.download(use_local_copy=use_local_copy, force_download=force_download)
            return self.restore(info, keep_cached=keep_cached, drop_tables=drop_tables)

    def restore(
        self,
        info: Dict[str, Any],
        keep_cached: Optional[bool] = None,
        drop_tables: bool = False,
    ) -> Dict[str, Any]:
        """Restore the cached copy that `download` produced `info` for."""
        plan = self.plan
        local = plan.local_store
        keep = plan.context.settings.cache_by_default if keep_cached is None else keep_cached

        source = self.local_file_path()
        scratch: Optional[str] = None
        info["dropped_tables"] = []
        with plan.context.scratch_lock:
            try:
                if self.file_name.endswith(".gz"):
                    scratch = f"db-snapshots-load-{secrets.token_hex(8)}.sql"
                    zcat = Command(plan.context.settings.utilities.zcat, (source,), stdout=local.path(scratch))
                    plan.message(f"Running: {zcat.display()}")
                    result = plan.context.executor.run(zcat)
                    if not result.successful:
                        raise ExecutionError(
                            f"zcat command failed: {result.error_output()}",
                            command=zcat.display(),
                            result=result,
                        )
                    source = local.path(scratch)

                if drop_tables:
                    info["dropped_tables"] = plan.drop_local_tables()

                connection = plan.get_connection_config()
                command = plan.get_driver().build_load_command(source, connection.database)
                plan.run_command_with_credentials(command)
            finally:
                if scratch is not None:
                    local.delete(scratch)
                if info["downloaded"] and not keep and self.exists_locally():
                    local.delete(self.local_file)

        logger.info("snapshot_loaded | plan=%s file=%s connection=%s", plan.name, self.file_name, plan.connection)
        info["loaded"] = True
        return info
