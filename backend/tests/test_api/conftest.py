from __future__ import annotations

from typing import Any, Callable, Generator, Iterable

import pytest
from fastapi.testclient import TestClient

from dbsnapshots.api.deps import get_registry
from dbsnapshots.main import app
from dbsnapshots.services import PlanRegistry


class _DummyScheduler:
    def start(self) -> None:  # noqa: D401
        """No-op start."""
        return None

    def shutdown(self) -> None:  # noqa: D401
        """No-op shutdown."""
        return None


@pytest.fixture
def make_client(
    make_settings, make_context, monkeypatch: pytest.MonkeyPatch
) -> Generator[Callable[..., TestClient], None, None]:
    """Build a TestClient over tmp stores; archive files may be seeded first."""
    clients = []

    def _make(archive_files: Iterable[str] = (), **overrides: Any) -> TestClient:
        settings = make_settings(**overrides)
        context = make_context(settings)
        for file_name in archive_files:
            context.archive_store.put(f"{context.archive_path}/{file_name}", f"content of {file_name}")

        def override_get_registry() -> Generator[PlanRegistry, None, None]:
            registry = PlanRegistry(context)
            registry.load_all()
            yield registry

        app.dependency_overrides[get_registry] = override_get_registry

        # Stub settings and scheduler to avoid reading config files or starting APScheduler
        monkeypatch.setattr("dbsnapshots.main.get_settings", lambda: settings, raising=True)
        monkeypatch.setattr("dbsnapshots.api.health.get_settings", lambda: settings, raising=True)
        monkeypatch.setattr("dbsnapshots.main.get_scheduler", lambda timezone: _DummyScheduler(), raising=True)
        monkeypatch.setattr("dbsnapshots.main.schedule_plans", lambda scheduler, settings, factory: 0, raising=True)

        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        client.context = context  # type: ignore[attr-defined]
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
    # Cleanup overrides
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client(archive_files=[f"db-snapshot-daily-2024091{day}.sql.gz" for day in range(3)])
