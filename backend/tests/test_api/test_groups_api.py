from __future__ import annotations

import gzip

import pytest
from sqlalchemy import inspect

PLANS = {
    "app": {"file_template": "app-{date}", "environment_locks": {"create": "local"}},
    "reports": {"file_template": "reports-{date}", "connection": "reporting", "environment_locks": {"create": "local"}},
}
GROUPS = {"everything": {"plans": ["app", "reports"], "post_load_sqls": ["CREATE TABLE group_marker (id INTEGER)"]}}


@pytest.fixture
def group_client(make_client):
    return make_client(plans=PLANS, plan_groups=GROUPS)


def test_list_groups(group_client) -> None:
    assert group_client.get("/api/v1/plan-groups/").json() == [
        {"name": "everything", "plans": ["app", "reports"], "post_load_sqls": ["CREATE TABLE group_marker (id INTEGER)"]}
    ]


def test_unknown_group(group_client) -> None:
    assert group_client.post("/api/v1/plan-groups/nothing/snapshots").status_code == 404


def test_create_group_snapshots(group_client) -> None:
    response = group_client.post("/api/v1/plan-groups/everything/snapshots")
    assert response.status_code == 201
    assert response.json()["created"] == [
        {"plan": "app", "file_name": "app-20240913.sql.gz"},
        {"plan": "reports", "file_name": "reports-20240913.sql.gz"},
    ]


def test_load_group(group_client) -> None:
    archive = group_client.context.archive_store
    for name in ["app-20240913.sql.gz", "reports-20240913.sql.gz"]:
        archive.put(f"db-snapshots/{name}", gzip.compress(b"-- dump\n"))

    response = group_client.post("/api/v1/plan-groups/everything/load", json={})

    assert response.status_code == 200
    body = response.json()
    assert [entry["plan"] for entry in body["loaded"]] == ["app", "reports"]
    assert [r["scope"] for r in body["post_load_results"]] == ["group"]


def test_group_with_unknown_plan_is_server_error(make_client) -> None:
    client = make_client(plans=PLANS, plan_groups={"broken": {"plans": ["ghost"]}})
    response = client.post("/api/v1/plan-groups/broken/snapshots")
    assert response.status_code == 500
    assert "ghost" in response.json()["detail"]


def test_load_group_conflict_leaves_tables_in_place(group_client) -> None:
    archive = group_client.context.archive_store
    for name in ["app-20240913.sql.gz", "reports-20240913.sql.gz"]:
        archive.put(f"db-snapshots/{name}", gzip.compress(b"-- dump\n"))
    group_client.context.statements.execute("main", "CREATE TABLE users (id INTEGER)")

    response = group_client.post(
        "/api/v1/plan-groups/everything/load", json={"use_local_copy": True, "drop_tables": True}
    )

    assert response.status_code == 409
    assert inspect(group_client.context.statements.engine_for("main")).get_table_names() == ["users"]
