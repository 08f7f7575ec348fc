"""Settings models and loading.

The whole configuration surface is one JSON document. pydantic validates its
shape; semantic plan rules (template placeholders, table filters) are checked
when `SnapshotPlan` objects are built so they surface as `ConfigurationError`.

Lookup order for the document path:
- explicit `path` argument
- `DB_SNAPSHOTS_CONFIG` environment variable
- `db-snapshots.json` in the working directory

`APP_ENV` overrides the configured `environment`.
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dbsnapshots.core.errors import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "db-snapshots.json"


class FilesystemConfig(BaseModel):
    local_root: str = Field("storage/local", description="Directory backing the local (cache/staging) tier")
    local_path: str = Field("db-snapshots", description="Prefix inside the local tier for cached snapshots")
    archive_root: str = Field("storage/archive", description="Directory backing the archive tier")
    archive_path: str = Field("db-snapshots", description="Prefix inside the archive tier for snapshots")


class ConnectionConfig(BaseModel):
    driver: str = Field("mysql", description="Database engine: mysql, mariadb, pgsql")
    host: str = "127.0.0.1"
    read_host: Optional[str] = Field(None, description="Replica host preferred for dumps and credentials")
    port: Optional[int] = None
    database: str
    username: str
    password: str = ""


class EnvironmentLocks(BaseModel):
    create: str = "production"
    load: str = "local"


class PlanConfig(BaseModel):
    connection: Optional[str] = None
    file_template: str = "db-snapshots-{date}"
    dump_options: str = ""
    tables: List[str] = Field(default_factory=list)
    ignore_tables: List[str] = Field(default_factory=list)
    schema_only_tables: List[str] = Field(default_factory=list)
    keep_last: int = Field(1, ge=0)
    environment_locks: EnvironmentLocks = Field(default_factory=EnvironmentLocks)
    post_load_sqls: List[str] = Field(default_factory=list)
    schedule: Optional[str] = Field(None, description="Crontab expression for periodic creation")


class PlanGroupConfig(BaseModel):
    plans: List[str] = Field(default_factory=list)
    post_load_sqls: List[str] = Field(default_factory=list)


class MysqlUtilities(BaseModel):
    mysqldump: str = "mysqldump"
    mysql: str = "mysql"


class PgsqlUtilities(BaseModel):
    pg_dump: str = "pg_dump"
    psql: str = "psql"


class UtilitiesConfig(BaseModel):
    mysql: MysqlUtilities = Field(default_factory=MysqlUtilities)
    pgsql: PgsqlUtilities = Field(default_factory=PgsqlUtilities)
    gzip: Optional[str] = "gzip"
    zcat: str = "zcat"


class SnapshotsSettings(BaseModel):
    environment: str = "local"
    default_connection: Optional[str] = None
    cache_by_default: bool = False
    timezone: str = "UTC"
    filesystem: FilesystemConfig = Field(default_factory=FilesystemConfig)
    connections: Dict[str, ConnectionConfig] = Field(default_factory=dict)
    post_load_sqls: List[str] = Field(default_factory=list)
    plan_groups: Dict[str, PlanGroupConfig] = Field(default_factory=dict)
    plans: Dict[str, PlanConfig] = Field(default_factory=dict)
    utilities: UtilitiesConfig = Field(default_factory=UtilitiesConfig)

    model_config = ConfigDict(extra="ignore")


def _resolve_config_path(path: Optional[str]) -> Path:
    if path:
        return Path(path)
    return Path(os.getenv("DB_SNAPSHOTS_CONFIG", DEFAULT_CONFIG_FILENAME))


def parse_settings(data: dict) -> SnapshotsSettings:
    """Validate a settings mapping, applying the `APP_ENV` override."""
    try:
        settings = SnapshotsSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid db-snapshots configuration: {exc}") from exc
    env_override = os.getenv("APP_ENV")
    if env_override:
        settings = settings.model_copy(update={"environment": env_override})
    return settings


def load_settings(path: Optional[str] = None) -> SnapshotsSettings:
    """Load settings from a JSON document. A missing file yields defaults."""
    config_path = _resolve_config_path(path)
    if not config_path.exists():
        logger.warning("config_missing | path=%s using_defaults=true", config_path)
        return parse_settings({})
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Configuration file {config_path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a JSON object")
    logger.info("config_loaded | path=%s plans=%s", config_path, len(data.get("plans") or {}))
    return parse_settings(data)


@lru_cache(maxsize=1)
def get_settings() -> SnapshotsSettings:
    """Process-wide settings used by the HTTP layer and the scheduler."""
    return load_settings()
