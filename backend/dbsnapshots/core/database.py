"""SQL access to the databases that snapshots are loaded into.

Used for post-load statements and for dropping tables before a load. Engines
are created lazily, one per configured connection name.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Mapping, Optional

from sqlalchemy import MetaData, create_engine, text
from sqlalchemy.engine import URL, Engine

from dbsnapshots.core.config import ConnectionConfig
from dbsnapshots.core.errors import ConfigurationError
from dbsnapshots.domain.enums import DriverKind
from dbsnapshots.drivers import resolve_kind


logger = logging.getLogger(__name__)

EngineFactory = Callable[[ConnectionConfig], Engine]

_DIALECTS: Dict[DriverKind, str] = {
    DriverKind.MYSQL: "mysql+pymysql",
    DriverKind.PGSQL: "postgresql+psycopg2",
}


def build_url(connection: ConnectionConfig) -> URL:
    """SQLAlchemy URL for a configured connection."""
    return URL.create(
        _DIALECTS[resolve_kind(connection.driver)],
        username=connection.username,
        password=connection.password or None,
        host=connection.host,
        port=connection.port,
        database=connection.database,
    )


def default_engine_factory(connection: ConnectionConfig) -> Engine:
    return create_engine(build_url(connection), pool_pre_ping=True)


class StatementRunner:
    """Execute statements and schema operations per connection name."""

    def __init__(
        self,
        connections: Mapping[str, ConnectionConfig],
        engine_factory: Optional[EngineFactory] = None,
    ) -> None:
        self._connections = connections
        self._engine_factory = engine_factory or default_engine_factory
        self._engines: Dict[str, Engine] = {}

    def engine_for(self, connection_name: str) -> Engine:
        engine = self._engines.get(connection_name)
        if engine is not None:
            return engine
        connection = self._connections.get(connection_name)
        if connection is None:
            raise ConfigurationError(f"A database connection for name {connection_name} does not exist")
        engine = self._engine_factory(connection)
        self._engines[connection_name] = engine
        return engine

    def execute(self, connection_name: str, statement: str) -> None:
        engine = self.engine_for(connection_name)
        with engine.begin() as conn:
            conn.execute(text(statement))

    def drop_all_tables(self, connection_name: str) -> List[str]:
        """Drop every table on the connection; returns the dropped table names."""
        engine = self.engine_for(connection_name)
        metadata = MetaData()
        metadata.reflect(bind=engine)
        names = [table.name for table in metadata.sorted_tables]
        metadata.drop_all(bind=engine)
        logger.info("tables_dropped | connection=%s count=%s", connection_name, len(names))
        return names

    def dispose(self) -> None:
        for engine in self._engines.values():
            engine.dispose()
        self._engines.clear()
