"""Root conftest for tests directory."""

from __future__ import annotations

import gzip
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from dbsnapshots.core.config import ConnectionConfig, SnapshotsSettings, parse_settings
from dbsnapshots.core.database import StatementRunner
from dbsnapshots.core.executor import Command, CommandExecutor, CommandResult
from dbsnapshots.core.listeners import CallbackListener
from dbsnapshots.services import PlanRegistry, SnapshotContext


FIXED_NOW = datetime(2024, 9, 13, 4, 30, 0)


class FakeExecutor(CommandExecutor):
    """Records commands and imitates the external utilities on local files.

    - dump utilities write one line per invocation to their stdout file
    - `gzip -f <path>` and `zcat <path>` really (de)compress
    - programs listed in `fail` exit 1 with `stderr`
    """

    def __init__(self, fail: Iterable[str] = (), stderr: str = "boom", stdout: str = "") -> None:
        self.commands: List[Command] = []
        self.fail = set(fail)
        self.stderr = stderr
        self.stdout = stdout
        self.seen_credentials: Dict[str, str] = {}

    def run(self, command: Command) -> CommandResult:
        self.commands.append(command)
        self._capture_credentials(command)

        if command.program in self.fail:
            if command.stdout:
                # a failing dump may still leave a partial file behind
                Path(command.stdout).write_text("partial\n")
            if command.program == "gzip":
                Path(command.args[-1] + ".gz").write_bytes(b"partial")
            return CommandResult(returncode=1, stdout=self.stdout, stderr=self.stderr)

        if command.program == "gzip":
            source = Path(command.args[-1])
            with open(source, "rb") as src, gzip.open(str(source) + ".gz", "wb") as dst:
                shutil.copyfileobj(src, dst)
            source.unlink()
        elif command.program == "zcat":
            with gzip.open(command.args[0], "rb") as src, open(command.stdout, "wb") as dst:
                shutil.copyfileobj(src, dst)
        elif command.stdout:
            mode = "a" if command.append else "w"
            with open(command.stdout, mode) as fh:
                fh.write(f"-- {command.program} {' '.join(command.args)}\n")
        return CommandResult(returncode=0)

    def _capture_credentials(self, command: Command) -> None:
        candidates = [arg.split("=", 1)[1] for arg in command.args if arg.startswith("--defaults-extra-file=")]
        candidates.extend(value for key, value in command.env.items() if key == "PGPASSFILE")
        for path in candidates:
            if Path(path).exists():
                self.seen_credentials[path] = Path(path).read_text()

    def programs(self) -> List[str]:
        return [command.program for command in self.commands]


def sqlite_engine_factory(connection: ConnectionConfig) -> Engine:
    """One in-memory database per connection name."""
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables from leaking into settings."""
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("DB_SNAPSHOTS_CONFIG", raising=False)


@pytest.fixture
def engine_factory() -> Callable[[ConnectionConfig], Engine]:
    return sqlite_engine_factory


def settings_data(tmp_path: Path, **overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "environment": "local",
        "default_connection": "main",
        "filesystem": {
            "local_root": str(tmp_path / "local"),
            "local_path": "db-snapshots",
            "archive_root": str(tmp_path / "archive"),
            "archive_path": "db-snapshots",
        },
        "connections": {
            "main": {
                "driver": "mysql",
                "host": "db.internal",
                "database": "app",
                "username": "app",
                "password": "secret",
            },
            "reporting": {
                "driver": "pgsql",
                "host": "pg.internal",
                "database": "reports",
                "username": "reporter",
                "password": "pw",
            },
        },
        "plans": {
            "daily": {
                "file_template": "db-snapshot-daily-{date:%Y%m%d}",
                "keep_last": 2,
                "environment_locks": {"create": "local", "load": "local"},
            },
        },
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., SnapshotsSettings]:
    def _make(**overrides: Any) -> SnapshotsSettings:
        return parse_settings(settings_data(tmp_path, **overrides))

    return _make


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def messages() -> List[str]:
    return []


@pytest.fixture
def make_context(executor: FakeExecutor, messages: List[str]) -> Callable[..., SnapshotContext]:
    def _make(settings: SnapshotsSettings, progress: Optional[Callable[[int, int], None]] = None) -> SnapshotContext:
        return SnapshotContext.from_settings(
            settings,
            executor=executor,
            listener=CallbackListener(messages.append, progress),
            statements=StatementRunner(settings.connections, engine_factory=sqlite_engine_factory),
            clock=lambda: FIXED_NOW,
        )

    return _make


@pytest.fixture
def make_registry(make_settings, make_context) -> Callable[..., PlanRegistry]:
    """Registry over tmp stores, optionally seeding archive files first."""

    def _make(archive_files: Iterable[str] = (), progress=None, **overrides: Any) -> PlanRegistry:
        context = make_context(make_settings(**overrides), progress)
        for file_name in archive_files:
            context.archive_store.put(f"{context.archive_path}/{file_name}", f"content of {file_name}")
        registry = PlanRegistry(context)
        registry.load_all()
        return registry

    return _make
