from __future__ import annotations


def test_list_and_clear_cache(client) -> None:
    local = client.context.local_store
    local.put("db-snapshots/db-snapshot-daily-20240911.sql.gz", b"aa")
    local.put("db-snapshots/db-snapshot-daily-20240912.sql.gz", b"bbb")

    listed = client.get("/api/v1/cache/").json()
    assert [entry["file_name"] for entry in listed] == [
        "db-snapshot-daily-20240911.sql.gz",
        "db-snapshot-daily-20240912.sql.gz",
    ]

    response = client.delete("/api/v1/cache/", params={"except_file": "db-snapshot-daily-20240912.sql.gz"})

    assert response.json() == {
        "deleted": ["db-snapshot-daily-20240911.sql.gz"],
        "kept": "db-snapshot-daily-20240912.sql.gz",
    }
    assert [entry["file_name"] for entry in client.get("/api/v1/cache/").json()] == ["db-snapshot-daily-20240912.sql.gz"]
