"""Database drivers and engine-name resolution.

The set of drivers is closed: engine names from connection configuration map
onto one of the classes below, and anything else is a configuration error.
"""

from __future__ import annotations

from typing import Dict, Optional, Type

from dbsnapshots.core.config import UtilitiesConfig
from dbsnapshots.core.errors import ConfigurationError
from dbsnapshots.domain.enums import DriverKind
from dbsnapshots.drivers.base import DatabaseDriver
from dbsnapshots.drivers.mysql import MysqlDriver
from dbsnapshots.drivers.postgres import PostgresDriver


_ENGINE_ALIASES: Dict[str, DriverKind] = {
    "mysql": DriverKind.MYSQL,
    "mariadb": DriverKind.MYSQL,
    "pgsql": DriverKind.PGSQL,
    "postgres": DriverKind.PGSQL,
    "postgresql": DriverKind.PGSQL,
}

_REGISTRY: Dict[DriverKind, Type[DatabaseDriver]] = {
    DriverKind.MYSQL: MysqlDriver,
    DriverKind.PGSQL: PostgresDriver,
}


def resolve_kind(engine: str) -> DriverKind:
    kind = _ENGINE_ALIASES.get((engine or "").lower())
    if kind is None:
        raise ConfigurationError(f"Unsupported database driver: {engine}")
    return kind


def get_driver(engine: str, utilities: Optional[UtilitiesConfig] = None) -> DatabaseDriver:
    """Instantiate the driver for a connection's declared engine."""
    return _REGISTRY[resolve_kind(engine)](utilities)


__all__ = [
    "DatabaseDriver",
    "MysqlDriver",
    "PostgresDriver",
    "get_driver",
    "resolve_kind",
]
