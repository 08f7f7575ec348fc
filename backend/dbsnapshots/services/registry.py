"""Plan registry: builds plans from settings and assigns archive files to them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dbsnapshots.core.errors import ConfigurationError
from dbsnapshots.services.context import SnapshotContext
from dbsnapshots.services.plans import SnapshotPlan
from dbsnapshots.services.snapshots import format_bytes


logger = logging.getLogger(__name__)

# Names used as sub-commands alongside plan names
RESERVED_PLAN_NAMES = frozenset({"cached"})


@dataclass
class RegistryLoad:
    plans: List[SnapshotPlan] = field(default_factory=list)
    unaccepted_files: List[str] = field(default_factory=list)


class PlanRegistry:
    """All configured plans, populated from one archive listing."""

    def __init__(self, context: SnapshotContext) -> None:
        self.context = context
        self._plans: Dict[str, SnapshotPlan] = self.build_plans()
        self._loaded: Optional[RegistryLoad] = None

    @classmethod
    def from_settings(cls, settings, **overrides: Any) -> "PlanRegistry":
        return cls(SnapshotContext.from_settings(settings, **overrides))

    def build_plans(self) -> Dict[str, SnapshotPlan]:
        configured = self.context.settings.plans
        if not configured:
            raise ConfigurationError("No snapshot plans are configured")
        plans: Dict[str, SnapshotPlan] = {}
        for name, plan_config in configured.items():
            if name in RESERVED_PLAN_NAMES:
                raise ConfigurationError(f'"{name}" is a reserved name and cannot be used as a snapshot plan name')
            plans[name] = SnapshotPlan(name, plan_config, self.context)
        return plans

    @property
    def plans(self) -> List[SnapshotPlan]:
        return list(self._plans.values())

    def find(self, name: str) -> Optional[SnapshotPlan]:
        return self._plans.get(name)

    def load_all(self) -> RegistryLoad:
        """List the archive once and give every file to the most specific plan that matches it.

        Files no plan accepts are reported as unaccepted. Plans are refreshed
        from scratch on every call.
        """
        prefix = self.context.archive_path + "/"
        ordered = sorted(self.plans, key=lambda plan: plan.template.specificity, reverse=True)
        for plan in ordered:
            plan.snapshots = []

        unaccepted: List[str] = []
        for archive_file in self.context.archive_store.list(self.context.archive_path):
            file_name = archive_file[len(prefix):] if archive_file.startswith(prefix) else archive_file
            if not any(plan.accept(file_name) for plan in ordered):
                unaccepted.append(file_name)

        for plan in self.plans:
            plan.sort_snapshots()

        logger.info(
            "registry_loaded | plans=%s snapshots=%s unaccepted=%s",
            len(self._plans),
            sum(len(plan.snapshots) for plan in self.plans),
            len(unaccepted),
        )
        self._loaded = RegistryLoad(plans=self.plans, unaccepted_files=unaccepted)
        return self._loaded

    @property
    def loaded(self) -> RegistryLoad:
        if self._loaded is None:
            return self.load_all()
        return self._loaded

    def cached_files(self) -> List[Dict[str, Any]]:
        local = self.context.local_store
        local_path = self.context.local_path
        files = []
        for local_file in local.list(local_path):
            size = local.size(local_file)
            files.append(
                {
                    "file_name": local_file[len(local_path) + 1:],
                    "size": size,
                    "formatted_size": format_bytes(size),
                }
            )
        return files

    def clear_cache(self, except_file: Optional[str] = None) -> List[str]:
        """Delete every cached snapshot except `except_file`; returns deleted names."""
        local = self.context.local_store
        local_path = self.context.local_path
        cleared: List[str] = []
        for local_file in local.list(local_path):
            file_name = local_file[len(local_path) + 1:]
            if file_name == except_file:
                continue
            if local.delete(local_file):
                cleared.append(file_name)
        logger.info("cache_cleared | deleted=%s kept=%s", len(cleared), except_file)
        return cleared
