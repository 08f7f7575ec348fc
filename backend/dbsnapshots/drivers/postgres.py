from __future__ import annotations

from typing import Dict, List, Sequence

from dbsnapshots.core.config import ConnectionConfig
from dbsnapshots.core.executor import Command
from dbsnapshots.drivers.base import DatabaseDriver

CONNECTION_ARGS = ("-h", "{host}", "-p", "{port}", "-U", "{username}")


class PostgresDriver(DatabaseDriver):
    """PostgreSQL driver built on `pg_dump` and `psql`.

    The password travels in a pgpass file referenced by `PGPASSFILE`; libpq
    ignores that file unless it is readable by the owner only. Host, port and
    user cannot be taken from it, hence the extra placeholders.
    """

    name = "pgsql"
    credentials_prefix = "db-snapshots-pgpass"
    default_port = 5432

    def build_dump_command(
        self,
        output_path: str,
        dump_options: str,
        tables: Sequence[str],
        ignore_tables: Sequence[str],
        schema_only_tables: Sequence[str],
        database: str,
    ) -> List[Command]:
        pg_dump = self.utilities_config.pgsql.pg_dump
        options = self.split_options(dump_options)
        env = {"PGPASSFILE": "{credentials_file}"}

        commands: List[Command] = []
        if tables:
            data_tables = self.data_tables(tables, schema_only_tables)
            if data_tables:
                selectors = [arg for table in data_tables for arg in ("-t", table)]
                commands.append(
                    Command(pg_dump, (*CONNECTION_ARGS, *options, *selectors, database), env=env, stdout=output_path)
                )
        else:
            excludes = [f"--exclude-table={table}" for table in [*ignore_tables, *schema_only_tables]]
            commands.append(
                Command(pg_dump, (*CONNECTION_ARGS, *options, *excludes, database), env=env, stdout=output_path)
            )

        if schema_only_tables:
            selectors = [arg for table in schema_only_tables for arg in ("-t", table)]
            commands.append(
                Command(
                    pg_dump,
                    (*CONNECTION_ARGS, "--schema-only", *options, *selectors, database),
                    env=env,
                    stdout=output_path,
                    append=bool(commands),
                )
            )

        return commands

    def build_load_command(self, input_path: str, database: str) -> Command:
        psql = self.utilities_config.pgsql.psql
        return Command(
            psql,
            (*CONNECTION_ARGS, database),
            env={"PGPASSFILE": "{credentials_file}"},
            stdin=input_path,
        )

    def credentials_content(self, connection: ConnectionConfig) -> str:
        # pgpass format: hostname:port:database:username:password
        return ":".join(
            [
                self.resolve_host(connection),
                str(self.resolve_port(connection)),
                connection.database,
                connection.username,
                connection.password,
            ]
        )

    def replacements(self, connection: ConnectionConfig, credentials_path: str) -> Dict[str, str]:
        return {
            "{credentials_file}": credentials_path,
            "{database}": connection.database,
            "{host}": self.resolve_host(connection),
            "{port}": str(self.resolve_port(connection)),
            "{username}": connection.username,
        }

    def utility_paths(self) -> List[str]:
        return [self.utilities_config.pgsql.pg_dump, self.utilities_config.pgsql.psql]

    @classmethod
    def utilities(cls) -> List[str]:
        return ["pg_dump", "psql"]
