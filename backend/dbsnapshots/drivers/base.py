"""Base class for database drivers.

A driver knows one engine family's command-line vocabulary: how to dump a
database (optionally restricted to tables, excluding tables, or with tables
captured schema-only), how to restore a dump, and how to hand credentials to
its utilities without putting passwords on the command line.
"""

from __future__ import annotations

import logging
import os
import secrets
import shlex
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from dbsnapshots.core.config import ConnectionConfig, UtilitiesConfig
from dbsnapshots.core.executor import Command
from dbsnapshots.core.storage import BlobStore


class DatabaseDriver(ABC):
    """Builds dump/load commands and manages transient credential files."""

    name: str = "base"
    credentials_prefix: str = "db-snapshots-credentials"
    default_port: int = 0

    def __init__(self, utilities: Optional[UtilitiesConfig] = None) -> None:
        self.utilities_config = utilities or UtilitiesConfig()
        self._credentials_file: Optional[str] = None
        self._logger = logging.getLogger(self.__class__.__module__)

    @abstractmethod
    def build_dump_command(
        self,
        output_path: str,
        dump_options: str,
        tables: Sequence[str],
        ignore_tables: Sequence[str],
        schema_only_tables: Sequence[str],
        database: str,
    ) -> List[Command]:
        """Commands that together write the dump to `output_path`, in order."""

    @abstractmethod
    def build_load_command(self, input_path: str, database: str) -> Command:
        """Command that restores the uncompressed dump at `input_path`."""

    @abstractmethod
    def credentials_content(self, connection: ConnectionConfig) -> str:
        """Body of the engine-specific credentials file."""

    @abstractmethod
    def replacements(self, connection: ConnectionConfig, credentials_path: str) -> Dict[str, str]:
        """Placeholder map substituted into every command before it runs."""

    @abstractmethod
    def utility_paths(self) -> List[str]:
        """Configured executables for `utilities()`, in the same order."""

    @classmethod
    @abstractmethod
    def utilities(cls) -> List[str]:
        """Executables this driver needs on the PATH."""

    def write_credentials(self, connection: ConnectionConfig, store: BlobStore) -> Dict[str, str]:
        """Write the credentials file (mode 0600) and return placeholder replacements."""
        self.cleanup_credentials(store)
        file_name = f"{self.credentials_prefix}-{secrets.token_hex(8)}.txt"
        store.make_directory("")
        credentials_path = store.path(file_name)
        # recorded first so cleanup covers a partially written file
        self._credentials_file = file_name
        fd = os.open(credentials_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(self.credentials_content(connection))
        os.chmod(credentials_path, 0o600)
        return self.replacements(connection, credentials_path)

    def cleanup_credentials(self, store: BlobStore) -> None:
        """Remove the credentials file, if one was written. Safe to call repeatedly."""
        if self._credentials_file is None:
            return
        store.delete(self._credentials_file)
        self._credentials_file = None

    def resolve_host(self, connection: ConnectionConfig) -> str:
        return connection.read_host or connection.host

    def resolve_port(self, connection: ConnectionConfig) -> int:
        return connection.port or self.default_port

    @staticmethod
    def split_options(dump_options: str) -> List[str]:
        return shlex.split(dump_options) if dump_options else []

    @staticmethod
    def data_tables(tables: Sequence[str], schema_only_tables: Sequence[str]) -> List[str]:
        """`tables` minus the schema-only set, keeping configured order."""
        schema_only = set(schema_only_tables)
        return [table for table in tables if table not in schema_only]
