from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SnapshotOut(BaseModel):
    """A snapshot as listed for a plan."""

    index: int = Field(..., description="1-based position in the newest-first list")
    file_name: str = Field(..., description="Archive file name")
    date: datetime = Field(..., description="Date parsed from the file name")
    size: Optional[int] = Field(None, description="Archive size in bytes")
    formatted_size: Optional[str] = Field(None, description="Human-readable archive size")
    cached: bool = Field(False, description="Whether a local cached copy exists")


class PlanOut(BaseModel):
    """Schema for plan responses."""

    name: str
    connection: Optional[str] = None
    file_template: str
    dump_options: str = ""
    keep_last: int
    environment_locks: Dict[str, str]
    can_create: bool
    can_load: bool
    schedule: Optional[str] = None
    missing_utilities: List[str] = Field(default_factory=list, description="Required executables not found on the PATH")
    error: Optional[str] = Field(default=None, description="Configuration problem that keeps this plan from running")
    snapshots: List[SnapshotOut] = Field(default_factory=list)


class CachedFile(BaseModel):
    file_name: str
    size: int
    formatted_size: str


class PlanGroupOut(BaseModel):
    name: str
    plans: List[str]
    post_load_sqls: List[str] = Field(default_factory=list)


class PlanListing(BaseModel):
    """Everything the archive and cache currently hold."""

    environment: str
    plans: List[PlanOut]
    unaccepted_files: List[str] = Field(default_factory=list, description="Archive files no plan accepts")
    cached_files: List[CachedFile] = Field(default_factory=list)
    plan_groups: List[PlanGroupOut] = Field(default_factory=list)


class CreateResult(BaseModel):
    plan: str
    created: SnapshotOut
    removed: int = Field(0, description="Snapshots removed by retention")


class CleanupResult(BaseModel):
    plan: str
    dry_run: bool
    count: int


class LoadRequest(BaseModel):
    """Options for restoring a snapshot into the plan's connection."""

    file: Optional[str] = Field(None, description="File name or 1-based index; defaults to the latest")
    use_local_copy: bool = Field(False, description="Only use an existing cached copy")
    force_download: bool = Field(False, description="Always download, replacing any cached copy")
    drop_tables: bool = Field(False, description="Drop all tables before loading")
    skip_post_commands: bool = Field(False, description="Skip post-load statements")
    keep_cached: Optional[bool] = Field(None, description="Keep a downloaded copy in the cache")


class GroupLoadRequest(BaseModel):
    use_local_copy: bool = False
    force_download: bool = False
    drop_tables: bool = False
    skip_post_commands: bool = False


class PostLoadResult(BaseModel):
    statement: str
    scope: str
    success: bool
    error: Optional[str] = None


class LoadResult(BaseModel):
    plan: str
    file_name: str
    downloaded: bool
    size: Optional[int] = None
    dropped_tables: List[str] = Field(default_factory=list)
    post_load_results: List[PostLoadResult] = Field(default_factory=list)


class GroupCreateResult(BaseModel):
    group: str
    created: List[Dict[str, Any]]


class GroupLoadResult(BaseModel):
    group: str
    loaded: List[Dict[str, Any]]
    dropped_tables: List[str] = Field(default_factory=list)
    post_load_results: List[PostLoadResult] = Field(default_factory=list)


class CacheClearResult(BaseModel):
    deleted: List[str]
    kept: Optional[str] = None
