"""Tests for plan groups: lookup, batch create and batch load."""

from __future__ import annotations

import gzip

import pytest
from sqlalchemy import inspect

from dbsnapshots.core.errors import ConfigurationError
from dbsnapshots.services import PlanGroup


PLANS = {
    "app": {"file_template": "app-{date}", "environment_locks": {"create": "local"}, "post_load_sqls": ["CREATE TABLE app_marker (id INTEGER)"]},
    "reports": {"file_template": "reports-{date}", "connection": "reporting", "environment_locks": {"create": "local"}},
}

GROUPS = {"everything": {"plans": ["app", "reports"], "post_load_sqls": ["CREATE TABLE group_marker (id INTEGER)"]}}


@pytest.fixture
def registry(make_registry):
    return make_registry(plans=PLANS, plan_groups=GROUPS)


def test_find(registry) -> None:
    group = PlanGroup.find("everything", registry)
    assert [plan.name for plan in group.plans] == ["app", "reports"]
    assert group.post_load_sqls == ["CREATE TABLE group_marker (id INTEGER)"]
    assert PlanGroup.find("nothing", registry) is None
    with pytest.raises(ConfigurationError, match="cannot be empty"):
        PlanGroup.find("", registry)


def test_unknown_member_plan(make_registry) -> None:
    registry = make_registry(plans=PLANS, plan_groups={"broken": {"plans": ["app", "ghost"]}})
    with pytest.raises(ConfigurationError, match="ghost"):
        PlanGroup.find("broken", registry).plans


def test_create_all_in_declared_order(registry, executor, messages) -> None:
    snapshots = PlanGroup.find("everything", registry).create_all()

    assert [s.file_name for s in snapshots] == ["app-20240913.sql.gz", "reports-20240913.sql.gz"]
    assert [p for p in executor.programs() if p != "gzip"] == ["mysqldump", "pg_dump"]
    assert "Creating snapshot for plan: reports" in messages


def test_cleanup_all(make_registry) -> None:
    registry = make_registry(
        archive_files=["app-20240901.sql.gz", "app-20240902.sql.gz", "reports-20240901.sql.gz"],
        plans=PLANS,
        plan_groups=GROUPS,
    )
    assert PlanGroup.find("everything", registry).cleanup_all() == {"app": 1, "reports": 0}


def test_load_all_runs_group_statements_last(registry, messages) -> None:
    archive = registry.context.archive_store
    for name in ["app-20240913.sql.gz", "reports-20240913.sql.gz"]:
        archive.put(f"db-snapshots/{name}", gzip.compress(b"-- dump\n"))
    registry.load_all()

    result = PlanGroup.find("everything", registry).load_all()

    assert result["group"] == "everything"
    assert [entry["plan"] for entry in result["loaded"]] == ["app", "reports"]
    scopes = [r["scope"] for r in result["post_load_results"]]
    assert scopes == ["plan", "group"]
    assert all(r["success"] for r in result["post_load_results"])
    assert messages.index("Loading plan: reports") < messages.index("Running SQL: CREATE TABLE group_marker (id INTEGER)")


def test_load_all_skip_post_commands(registry) -> None:
    registry.context.archive_store.put("db-snapshots/app-20240913.sql.gz", gzip.compress(b"-- dump\n"))
    registry.load_all()

    result = PlanGroup.find("everything", registry).load_all(skip_post_commands=True)

    assert [entry["plan"] for entry in result["loaded"]] == ["app"]
    assert result["post_load_results"] == []


def test_drop_local_tables_once_per_connection(make_registry) -> None:
    plans = {
        "a": {"file_template": "a-{date}"},
        "b": {"file_template": "b-{date}"},
    }
    registry = make_registry(plans=plans, plan_groups={"both": {"plans": ["a", "b"]}})
    registry.context.statements.execute("main", "CREATE TABLE t (id INTEGER)")

    assert PlanGroup.find("both", registry).drop_local_tables() == ["t"]


def seed_both(registry) -> None:
    archive = registry.context.archive_store
    for name in ["app-20240913.sql.gz", "reports-20240913.sql.gz"]:
        archive.put(f"db-snapshots/{name}", gzip.compress(b"-- dump\n"))
    registry.load_all()


def test_load_all_drops_tables_after_every_download(registry, messages) -> None:
    seed_both(registry)
    registry.context.statements.execute("main", "CREATE TABLE users (id INTEGER)")

    result = PlanGroup.find("everything", registry).load_all(skip_post_commands=True, drop_tables=True)

    assert result["dropped_tables"] == ["users"]
    downloads = [i for i, message in enumerate(messages) if message.startswith("Downloading ")]
    drop = messages.index("Dropping all tables on connection main")
    assert len(downloads) == 2
    assert max(downloads) < drop < messages.index("Loading plan: app")


def test_load_all_missing_local_copy_keeps_tables(registry, executor) -> None:
    seed_both(registry)
    registry.context.statements.execute("main", "CREATE TABLE users (id INTEGER)")

    with pytest.raises(FileNotFoundError):
        PlanGroup.find("everything", registry).load_all(use_local_copy=True, drop_tables=True)

    engine = registry.context.statements.engine_for("main")
    assert inspect(engine).get_table_names() == ["users"]
    assert executor.commands == []


def test_load_all_failed_download_discards_earlier_copies(registry) -> None:
    seed_both(registry)
    registry.context.statements.execute("main", "CREATE TABLE users (id INTEGER)")
    registry.context.archive_store.delete("db-snapshots/reports-20240913.sql.gz")

    with pytest.raises(FileNotFoundError):
        PlanGroup.find("everything", registry).load_all(drop_tables=True)

    assert registry.context.local_store.list() == []
    engine = registry.context.statements.engine_for("main")
    assert inspect(engine).get_table_names() == ["users"]
