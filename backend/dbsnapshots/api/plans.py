"""Snapshot plans API router."""

from __future__ import annotations

import logging
from typing import Union

from fastapi import APIRouter, Depends, HTTPException, Query, status

from dbsnapshots.api.deps import get_plan_or_404, get_registry, plan_out, snapshot_out
from dbsnapshots.schemas import (
    CachedFile,
    CleanupResult,
    CreateResult,
    LoadRequest,
    LoadResult,
    PlanGroupOut,
    PlanListing,
    PlanOut,
)
from dbsnapshots.services import PlanGroup, PlanRegistry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("/", response_model=PlanListing)
def list_plans(registry: PlanRegistry = Depends(get_registry)) -> PlanListing:
    loaded = registry.loaded
    return PlanListing(
        environment=registry.context.settings.environment,
        plans=[plan_out(plan) for plan in loaded.plans],
        unaccepted_files=loaded.unaccepted_files,
        cached_files=[CachedFile(**entry) for entry in registry.cached_files()],
        plan_groups=[
            PlanGroupOut(name=group.name, plans=group.plan_names, post_load_sqls=group.post_load_sqls)
            for group in PlanGroup.all(registry)
        ],
    )


@router.get("/{name}", response_model=PlanOut)
def get_plan(name: str, registry: PlanRegistry = Depends(get_registry)) -> PlanOut:
    return plan_out(get_plan_or_404(registry, name))


@router.post("/{name}/snapshots", response_model=CreateResult, status_code=status.HTTP_201_CREATED)
def create_snapshot(
    name: str,
    cleanup: bool = Query(False, description="Apply keep_last retention after creating"),
    registry: PlanRegistry = Depends(get_registry),
) -> CreateResult:
    plan = get_plan_or_404(registry, name)
    if not plan.can_create():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=(
                f"Snapshots for plan {name} can only be created in the "
                f"{plan.environment_locks.create} environment"
            ),
        )
    snapshot = plan.create()
    removed = plan.cleanup() if cleanup else 0
    index = plan.snapshots.index(snapshot) + 1 if snapshot in plan.snapshots else 1
    return CreateResult(plan=name, created=snapshot_out(snapshot, index), removed=removed)


@router.post("/{name}/cleanup", response_model=CleanupResult)
def cleanup_plan(
    name: str,
    dry_run: bool = Query(False, description="Only count what would be removed"),
    registry: PlanRegistry = Depends(get_registry),
) -> CleanupResult:
    plan = get_plan_or_404(registry, name)
    count = plan.cleanup_count() if dry_run else plan.cleanup()
    return CleanupResult(plan=name, dry_run=dry_run, count=count)


@router.delete("/{name}/snapshots/{file}", status_code=status.HTTP_204_NO_CONTENT)
def delete_snapshot(name: str, file: str, registry: PlanRegistry = Depends(get_registry)) -> None:
    plan = get_plan_or_404(registry, name)
    snapshot = plan.find_snapshot(file)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Snapshot not found")
    if not snapshot.remove():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Snapshot could not be deleted from the archive")


@router.post("/{name}/load", response_model=LoadResult)
def load_snapshot(
    name: str,
    payload: LoadRequest,
    registry: PlanRegistry = Depends(get_registry),
) -> LoadResult:
    plan = get_plan_or_404(registry, name)
    if not plan.can_load():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Snapshots for plan {name} can only be loaded in the {plan.environment_locks.load} environment",
        )
    target: Union[str, None] = payload.file
    snapshot = plan.find_snapshot(target) if target else plan.latest()
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Snapshot not found")

    try:
        info = snapshot.load(
            use_local_copy=payload.use_local_copy,
            force_download=payload.force_download,
            keep_cached=payload.keep_cached,
            drop_tables=payload.drop_tables,
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    post_load = [] if payload.skip_post_commands else plan.execute_post_load_commands()
    logger.info("api_snapshot_loaded | plan=%s file=%s", name, snapshot.file_name)
    return LoadResult(
        plan=name,
        file_name=snapshot.file_name,
        downloaded=info["downloaded"],
        size=info.get("size"),
        dropped_tables=info["dropped_tables"],
        post_load_results=post_load,
    )
