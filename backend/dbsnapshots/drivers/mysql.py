from __future__ import annotations

from typing import Dict, List, Sequence

from dbsnapshots.core.config import ConnectionConfig
from dbsnapshots.core.executor import Command
from dbsnapshots.drivers.base import DatabaseDriver


class MysqlDriver(DatabaseDriver):
    """MySQL / MariaDB driver built on `mysqldump` and `mysql`.

    Credentials are passed through an option file given as
    `--defaults-extra-file`, which must be the first argument.
    """

    name = "mysql"
    credentials_prefix = "db-snapshots-mysql-credentials"
    default_port = 3306

    def _ignore_options(self, tables: Sequence[str], database: str) -> List[str]:
        return [f"--ignore-table={database}.{table}" for table in tables]

    def build_dump_command(
        self,
        output_path: str,
        dump_options: str,
        tables: Sequence[str],
        ignore_tables: Sequence[str],
        schema_only_tables: Sequence[str],
        database: str,
    ) -> List[Command]:
        mysqldump = self.utilities_config.mysql.mysqldump
        options = self.split_options(dump_options)
        base = ["--defaults-extra-file={credentials_file}", *options]

        ignore = self._ignore_options(ignore_tables, database) if ignore_tables and not tables else []

        commands: List[Command] = []
        if tables:
            data_tables = self.data_tables(tables, schema_only_tables)
            if data_tables:
                commands.append(
                    Command(mysqldump, tuple([*base, database, *data_tables]), stdout=output_path)
                )
        else:
            schema_only_ignore = self._ignore_options(schema_only_tables, database)
            commands.append(
                Command(mysqldump, tuple([*base, *ignore, *schema_only_ignore, database]), stdout=output_path)
            )

        if schema_only_tables:
            commands.append(
                Command(
                    mysqldump,
                    tuple([*base, *ignore, "--no-data", database, *schema_only_tables]),
                    stdout=output_path,
                    append=bool(commands),
                )
            )

        return commands

    def build_load_command(self, input_path: str, database: str) -> Command:
        mysql = self.utilities_config.mysql.mysql
        return Command(mysql, ("--defaults-extra-file={credentials_file}", database), stdin=input_path)

    def credentials_content(self, connection: ConnectionConfig) -> str:
        return "\n".join(
            [
                "[client]",
                f"user = '{connection.username}'",
                f"password = '{connection.password}'",
                f"host = '{self.resolve_host(connection)}'",
                f"port = '{self.resolve_port(connection)}'",
            ]
        )

    def replacements(self, connection: ConnectionConfig, credentials_path: str) -> Dict[str, str]:
        return {
            "{credentials_file}": credentials_path,
            "{database}": connection.database,
        }

    def utility_paths(self) -> List[str]:
        return [self.utilities_config.mysql.mysqldump, self.utilities_config.mysql.mysql]

    @classmethod
    def utilities(cls) -> List[str]:
        return ["mysqldump", "mysql"]
