"""Pydantic response and request schemas for the HTTP API."""

from .snapshots import (
    SnapshotOut,
    PlanOut,
    CachedFile,
    PlanGroupOut,
    PlanListing,
    CreateResult,
    CleanupResult,
    LoadRequest,
    GroupLoadRequest,
    PostLoadResult,
    LoadResult,
    GroupCreateResult,
    GroupLoadResult,
    CacheClearResult,
)  # noqa: F401
