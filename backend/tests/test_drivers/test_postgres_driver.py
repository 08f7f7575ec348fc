"""Tests for the PostgreSQL driver command builders and pgpass handling."""

from __future__ import annotations

import os
import stat

import pytest

from dbsnapshots.core.config import ConnectionConfig, UtilitiesConfig
from dbsnapshots.core.storage import LocalDiskStore
from dbsnapshots.drivers import PostgresDriver


@pytest.fixture
def driver() -> PostgresDriver:
    return PostgresDriver()


def test_full_dump_uses_connection_placeholders(driver: PostgresDriver) -> None:
    [command] = driver.build_dump_command("/tmp/out.sql", "--no-owner", [], ["sessions"], [], "reports")

    assert command.program == "pg_dump"
    assert command.args[:6] == ("-h", "{host}", "-p", "{port}", "-U", "{username}")
    assert "--no-owner" in command.args
    assert "--exclude-table=sessions" in command.args
    assert command.args[-1] == "reports"
    assert command.env == {"PGPASSFILE": "{credentials_file}"}


def test_tables_with_schema_only_produce_two_commands(driver: PostgresDriver) -> None:
    data, schema = driver.build_dump_command("/tmp/out.sql", "", ["a", "b", "c"], [], ["b"], "reports")

    assert list(data.args).count("-t") == 2
    assert "a" in data.args and "c" in data.args and "b" not in data.args
    assert data.append is False

    assert "--schema-only" in schema.args
    assert schema.args[-3:] == ("-t", "b", "reports")
    assert schema.append is True
    assert schema.stdout == "/tmp/out.sql"


def test_load_command(driver: PostgresDriver) -> None:
    command = driver.build_load_command("/tmp/in.sql", "reports")
    assert command.program == "psql"
    assert command.stdin == "/tmp/in.sql"
    assert command.env["PGPASSFILE"] == "{credentials_file}"


def test_custom_utilities_are_used() -> None:
    utilities = UtilitiesConfig.model_validate({"pgsql": {"pg_dump": "/opt/pg/bin/pg_dump", "psql": "/opt/pg/bin/psql"}})
    driver = PostgresDriver(utilities)
    [command] = driver.build_dump_command("/tmp/out.sql", "", [], [], [], "reports")
    assert command.program == "/opt/pg/bin/pg_dump"
    assert driver.build_load_command("/tmp/in.sql", "reports").program == "/opt/pg/bin/psql"


def test_pgpass_file_and_replacements(tmp_path, driver: PostgresDriver) -> None:
    connection = ConnectionConfig(driver="pgsql", host="pg.internal", database="reports", username="reporter", password="pw")
    store = LocalDiskStore(tmp_path)

    replacements = driver.write_credentials(connection, store)

    path = replacements["{credentials_file}"]
    assert open(path).read() == "pg.internal:5432:reports:reporter:pw"
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert replacements["{host}"] == "pg.internal"
    assert replacements["{port}"] == "5432"
    assert replacements["{username}"] == "reporter"

    resolved = driver.build_load_command("/tmp/in.sql", "reports").substitute(replacements)
    assert resolved.args[:6] == ("-h", "pg.internal", "-p", "5432", "-U", "reporter")
    assert resolved.env["PGPASSFILE"] == path

    driver.cleanup_credentials(store)
    assert not os.path.exists(path)


def test_utility_paths_follow_configuration() -> None:
    utilities = UtilitiesConfig.model_validate({"pgsql": {"psql": "/usr/lib/postgresql/16/bin/psql"}})
    assert PostgresDriver(utilities).utility_paths() == ["pg_dump", "/usr/lib/postgresql/16/bin/psql"]
