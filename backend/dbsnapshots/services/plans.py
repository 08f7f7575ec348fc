"""Snapshot plans: configuration, creation, retention and post-load SQL.

A plan names one recurring family of snapshots. Its filename template decides
which archive files belong to it; its connection decides which driver builds
the dump and restore commands.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from dbsnapshots.core.config import ConnectionConfig, PlanConfig
from dbsnapshots.core.errors import ConfigurationError, ExecutionError
from dbsnapshots.core.executor import Command
from dbsnapshots.core.storage import BlobStore
from dbsnapshots.domain.enums import PostLoadScope
from dbsnapshots.drivers import DatabaseDriver, get_driver
from dbsnapshots.services.context import SnapshotContext
from dbsnapshots.services.file_templates import FileTemplate
from dbsnapshots.services.snapshots import Snapshot


logger = logging.getLogger(__name__)

DUMP_EXTENSION = ".sql"
GZIP_EXTENSION = ".gz"


def run_post_load_statements(
    context: SnapshotContext,
    connection_name: str,
    statements: Iterable[str],
    scope: PostLoadScope,
    message=None,
) -> List[Dict[str, Any]]:
    """Run statements in order; each success or failure is recorded independently."""
    results: List[Dict[str, Any]] = []
    for statement in statements:
        if message is not None:
            message(f"Running SQL: {statement}")
        try:
            context.statements.execute(connection_name, statement)
        except SQLAlchemyError as exc:
            logger.warning(
                "post_load_statement_failed | connection=%s scope=%s error=%s",
                connection_name,
                scope.value,
                exc,
            )
            results.append({"statement": statement, "scope": scope.value, "success": False, "error": str(exc)})
            continue
        results.append({"statement": statement, "scope": scope.value, "success": True})
    return results


class SnapshotPlan:
    """Configured snapshot family plus its in-memory snapshot list (newest first)."""

    def __init__(self, name: str, config: PlanConfig, context: SnapshotContext) -> None:
        self.name = name
        self.context = context
        settings = context.settings

        self.connection: Optional[str] = config.connection or settings.default_connection
        self.file_template = config.file_template
        self.template = FileTemplate.parse(config.file_template, name)

        self.dump_options = config.dump_options
        self.tables: List[str] = list(config.tables)
        self.ignore_tables: List[str] = list(config.ignore_tables)
        self.schema_only_tables: List[str] = list(config.schema_only_tables)

        if self.tables and self.ignore_tables:
            raise ConfigurationError(
                f"tables and ignore_tables cannot both be configured with tables in plan {name}"
            )
        missing = [table for table in self.schema_only_tables if table not in self.tables]
        if self.tables and missing:
            raise ConfigurationError(
                "When using tables configuration, schema_only_tables that are configured "
                f"must appear in tables as well (plan {name}: {', '.join(missing)})"
            )

        self.keep_last = config.keep_last
        self.environment_locks = config.environment_locks
        self.post_load_sqls: List[str] = list(config.post_load_sqls)
        self.schedule = config.schedule

        self.snapshots: List[Snapshot] = []

        # Resolved once; a missing connection is reported when it is first needed
        self._driver: Optional[DatabaseDriver] = None
        connection_config = settings.connections.get(self.connection) if self.connection else None
        if connection_config is not None:
            self._driver = get_driver(connection_config.driver, settings.utilities)

    def __repr__(self) -> str:
        return f"<SnapshotPlan name={self.name} snapshots={len(self.snapshots)}>"

    # Stores and paths

    @property
    def archive_store(self) -> BlobStore:
        return self.context.archive_store

    @property
    def local_store(self) -> BlobStore:
        return self.context.local_store

    @property
    def archive_path(self) -> str:
        return self.context.archive_path

    @property
    def local_path(self) -> str:
        return self.context.local_path

    # Configuration

    def get_driver(self) -> DatabaseDriver:
        if self._driver is None:
            connection = self.get_connection_config()
            self._driver = get_driver(connection.driver, self.context.settings.utilities)
        return self._driver

    def get_connection_config(self) -> ConnectionConfig:
        if not self.connection:
            raise ConfigurationError(f"Snapshot plan {self.name} has no connection and no default_connection is set")
        connection = self.context.settings.connections.get(self.connection)
        if connection is None:
            raise ConfigurationError(f"A database connection for name {self.connection} does not exist")
        return connection

    def get_settings(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "connection": self.connection,
            "file_template": self.file_template,
            "dump_options": self.dump_options,
            "keep_last": self.keep_last,
            "environment_locks": self.environment_locks.model_dump(),
        }

    def missing_utilities(self) -> List[str]:
        """Configured executables this plan needs that are not on the PATH."""
        utilities = self.context.settings.utilities
        required = [*self.get_driver().utility_paths(), utilities.zcat]
        if utilities.gzip:
            required.append(utilities.gzip)
        return [program for program in required if self.context.executor.which(program) is None]

    def can_create(self) -> bool:
        return self.context.settings.environment == self.environment_locks.create

    def can_load(self) -> bool:
        return self.context.settings.environment == self.environment_locks.load

    def message(self, text: str) -> None:
        logger.info("plan_message | plan=%s message=%s", self.name, text)
        self.context.listener.on_message(text)

    # Matching

    def match_file_and_date(self, file_name: str):
        return self.template.match(file_name)

    def accept(self, archive_file_name: str) -> bool:
        file_date = self.match_file_and_date(archive_file_name)
        if file_date is None:
            return False
        self.snapshots.append(Snapshot(archive_file_name, file_date, self))
        return True

    def sort_snapshots(self) -> None:
        # stable: equal dates keep archive listing order
        self.snapshots.sort(key=lambda snapshot: snapshot.date, reverse=True)

    def latest(self) -> Optional[Snapshot]:
        return self.snapshots[0] if self.snapshots else None

    def find_snapshot(self, file: Union[str, int]) -> Optional[Snapshot]:
        """Look up by file name, or by 1-based position in the newest-first list."""
        if isinstance(file, int) or str(file).isdigit():
            index = int(file) - 1
            return self.snapshots[index] if 0 <= index < len(self.snapshots) else None
        return next((snapshot for snapshot in self.snapshots if snapshot.file_name == file), None)

    # Lifecycle

    def create(self) -> Snapshot:
        """Dump, compress, archive; returns the new snapshot."""
        date = self.context.clock()
        file_name = self.template.render(date) + DUMP_EXTENSION

        driver = self.get_driver()
        connection = self.get_connection_config()

        with self.context.scratch_lock:
            self.local_store.make_directory(self.local_path)
            local_file = f"{self.local_path}/{file_name}"
            local_full_path = self.local_store.path(local_file)

            logger.info("snapshot_create_start | plan=%s file=%s driver=%s", self.name, file_name, driver.name)

            try:
                commands = driver.build_dump_command(
                    local_full_path,
                    self.dump_options,
                    self.tables,
                    self.ignore_tables,
                    self.schema_only_tables,
                    connection.database,
                )
                for command in commands:
                    self.run_command_with_credentials(command)
            except ExecutionError:
                self.local_store.delete(local_file)
                raise

            gzip_util = self.context.settings.utilities.gzip
            if gzip_util:
                command = Command(gzip_util, ("-f", local_full_path))
                self.message(f"Running: {command.display()}")
                result = self.context.executor.run(command)
                if not result.successful:
                    self.local_store.delete(local_file)
                    self.local_store.delete(local_file + GZIP_EXTENSION)
                    raise ExecutionError(
                        f"gzip command failed: {result.error_output()}",
                        command=command.display(),
                        result=result,
                    )
                file_name += GZIP_EXTENSION
                local_file += GZIP_EXTENSION
                local_full_path += GZIP_EXTENSION

            archive_file = f"{self.archive_path}/{file_name}"
            with open(local_full_path, "rb") as fh:
                self.archive_store.put(archive_file, fh)
            self.local_store.delete(local_file)

        snapshot = Snapshot(file_name, date, self)

        # Same-name artifact was overwritten in the archive; keep the existing entry
        if not any(existing.file_name == snapshot.file_name for existing in self.snapshots):
            self.snapshots.insert(0, snapshot)

        logger.info("snapshot_create_success | plan=%s archive_file=%s", self.name, archive_file)
        return snapshot

    def cleanup_count(self) -> int:
        return len(self.snapshots[self.keep_last:])

    def cleanup(self) -> int:
        expired = self.snapshots[self.keep_last:]
        del self.snapshots[self.keep_last:]
        for snapshot in expired:
            snapshot.remove()
        if expired:
            logger.info("snapshot_cleanup | plan=%s removed=%s keep_last=%s", self.name, len(expired), self.keep_last)
        return len(expired)

    def clear_cached(self, keep_file_name: Optional[str] = None) -> List[str]:
        """Delete locally cached files that belong to this plan."""
        cleared: List[str] = []
        for local_file in self.local_store.list(self.local_path):
            if not local_file.startswith(self.local_path + "/"):
                continue
            file_name = local_file[len(self.local_path) + 1:]
            if self.match_file_and_date(file_name) is None:
                continue
            if file_name == keep_file_name:
                continue
            self.local_store.delete(local_file)
            cleared.append(file_name)
        return cleared

    # Loading support

    def drop_local_tables(self) -> List[str]:
        self.get_connection_config()
        self.message(f"Dropping all tables on connection {self.connection}")
        return self.context.statements.drop_all_tables(self.connection)

    def execute_post_load_commands(self) -> List[Dict[str, Any]]:
        """Global statements first, then this plan's own."""
        self.get_connection_config()
        results = run_post_load_statements(
            self.context,
            self.connection,
            self.context.settings.post_load_sqls,
            PostLoadScope.GLOBAL,
            self.message,
        )
        results.extend(
            run_post_load_statements(
                self.context,
                self.connection,
                self.post_load_sqls,
                PostLoadScope.PLAN,
                self.message,
            )
        )
        return results

    def run_command_with_credentials(self, command: Command) -> None:
        """Substitute credentials into `command` and run it; credentials never outlive the call."""
        connection = self.get_connection_config()
        driver = self.get_driver()
        store = self.local_store

        try:
            replacements = driver.write_credentials(connection, store)
            resolved = command.substitute(replacements)
            logger.debug("credentials_written | plan=%s driver=%s", self.name, driver.__class__.__name__)
            self.message(f"Running: {resolved.display()}")
            result = self.context.executor.run(resolved)
        finally:
            driver.cleanup_credentials(store)
            self.message("Cleaned up credentials")

        if not result.successful:
            raise ExecutionError(
                f"Command failed: {result.error_output()}",
                command=resolved.display(),
                result=result,
            )
