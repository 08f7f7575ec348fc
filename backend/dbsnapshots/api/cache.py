"""Local snapshot cache API router."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from dbsnapshots.api.deps import get_registry
from dbsnapshots.schemas import CacheClearResult, CachedFile
from dbsnapshots.services import PlanRegistry


router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/", response_model=List[CachedFile])
def list_cached(registry: PlanRegistry = Depends(get_registry)) -> List[CachedFile]:
    return [CachedFile(**entry) for entry in registry.cached_files()]


@router.delete("/", response_model=CacheClearResult)
def clear_cache(
    except_file: Optional[str] = Query(None, description="Cached file name to keep"),
    registry: PlanRegistry = Depends(get_registry),
) -> CacheClearResult:
    return CacheClearResult(deleted=registry.clear_cache(except_file), kept=except_file)
