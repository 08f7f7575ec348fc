"""Plan groups API router."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from dbsnapshots.api.deps import get_registry
from dbsnapshots.schemas import GroupCreateResult, GroupLoadRequest, GroupLoadResult, PlanGroupOut
from dbsnapshots.services import PlanGroup, PlanRegistry


router = APIRouter(prefix="/plan-groups", tags=["plan-groups"])


def _get_group_or_404(registry: PlanRegistry, name: str) -> PlanGroup:
    group = PlanGroup.find(name, registry)
    if group is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan group not found")
    return group


@router.get("/", response_model=List[PlanGroupOut])
def list_groups(registry: PlanRegistry = Depends(get_registry)) -> List[PlanGroupOut]:
    return [
        PlanGroupOut(name=group.name, plans=group.plan_names, post_load_sqls=group.post_load_sqls)
        for group in PlanGroup.all(registry)
    ]


@router.post("/{name}/snapshots", response_model=GroupCreateResult, status_code=status.HTTP_201_CREATED)
def create_group_snapshots(name: str, registry: PlanRegistry = Depends(get_registry)) -> GroupCreateResult:
    group = _get_group_or_404(registry, name)
    locked = [plan.name for plan in group.plans if not plan.can_create()]
    if locked:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Snapshots cannot be created in this environment for plans: {', '.join(locked)}",
        )
    snapshots = group.create_all()
    return GroupCreateResult(
        group=name,
        created=[{"plan": snapshot.plan.name, "file_name": snapshot.file_name} for snapshot in snapshots],
    )


@router.post("/{name}/load", response_model=GroupLoadResult)
def load_group(
    name: str,
    payload: GroupLoadRequest,
    registry: PlanRegistry = Depends(get_registry),
) -> GroupLoadResult:
    group = _get_group_or_404(registry, name)
    locked = [plan.name for plan in group.plans if not plan.can_load()]
    if locked:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Snapshots cannot be loaded in this environment for plans: {', '.join(locked)}",
        )
    try:
        result = group.load_all(
            use_local_copy=payload.use_local_copy,
            force_download=payload.force_download,
            skip_post_commands=payload.skip_post_commands,
            drop_tables=payload.drop_tables,
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return GroupLoadResult(**result)
