"""Shared dependencies and serializers for the API routers."""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Depends, HTTPException, status

from dbsnapshots.core.config import SnapshotsSettings, get_settings
from dbsnapshots.core.errors import ConfigurationError
from dbsnapshots.schemas import PlanOut, SnapshotOut
from dbsnapshots.services import PlanRegistry, Snapshot, SnapshotPlan, format_bytes


def get_registry(settings: SnapshotsSettings = Depends(get_settings)) -> Generator[PlanRegistry, None, None]:
    """A freshly loaded registry per request; engines are disposed afterwards."""
    registry = PlanRegistry.from_settings(settings)
    registry.load_all()
    try:
        yield registry
    finally:
        registry.context.statements.dispose()


def get_plan_or_404(registry: PlanRegistry, name: str) -> SnapshotPlan:
    plan = registry.find(name)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Snapshot plan not found")
    return plan


def snapshot_out(snapshot: Snapshot, index: int) -> SnapshotOut:
    size = snapshot.get_size()
    return SnapshotOut(
        index=index,
        file_name=snapshot.file_name,
        date=snapshot.date,
        size=size,
        formatted_size=format_bytes(size),
        cached=snapshot.exists_locally(),
    )


def plan_out(plan: SnapshotPlan) -> PlanOut:
    summary = plan.get_settings()
    error: Optional[str] = None
    try:
        missing = plan.missing_utilities()
    except ConfigurationError as exc:
        # listing stays available; the broken plan reports why
        missing, error = [], str(exc)
    return PlanOut(
        **summary,
        can_create=plan.can_create(),
        can_load=plan.can_load(),
        schedule=plan.schedule,
        missing_utilities=missing,
        error=error,
        snapshots=[snapshot_out(snapshot, index) for index, snapshot in enumerate(plan.snapshots, start=1)],
    )
