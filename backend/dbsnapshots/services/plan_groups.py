"""Plan groups: batch create, load and cleanup across several plans."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from dbsnapshots.core.errors import ConfigurationError, ExecutionError
from dbsnapshots.domain.enums import PostLoadScope
from dbsnapshots.services.plans import SnapshotPlan, run_post_load_statements
from dbsnapshots.services.registry import PlanRegistry
from dbsnapshots.services.snapshots import Snapshot


logger = logging.getLogger(__name__)


class PlanGroup:
    """Named batch of plans. Holds plan names only; plans are resolved through the registry."""

    def __init__(self, name: str, plan_names: List[str], post_load_sqls: List[str], registry: PlanRegistry) -> None:
        self.name = name
        self.plan_names = list(plan_names)
        self.post_load_sqls = list(post_load_sqls)
        self.registry = registry

    def __repr__(self) -> str:
        return f"<PlanGroup name={self.name} plans={self.plan_names}>"

    @classmethod
    def find(cls, name: str, registry: PlanRegistry) -> Optional["PlanGroup"]:
        if not name:
            raise ConfigurationError("Plan group name cannot be empty")
        config = registry.context.settings.plan_groups.get(name)
        if config is None:
            return None
        return cls(name, config.plans, config.post_load_sqls, registry)

    @classmethod
    def all(cls, registry: PlanRegistry) -> List["PlanGroup"]:
        return [
            cls(name, config.plans, config.post_load_sqls, registry)
            for name, config in registry.context.settings.plan_groups.items()
        ]

    @property
    def plans(self) -> List[SnapshotPlan]:
        resolved = []
        for plan_name in self.plan_names:
            plan = self.registry.find(plan_name)
            if plan is None:
                raise ConfigurationError(f"Plan group {self.name} references unknown snapshot plan {plan_name}")
            resolved.append(plan)
        return resolved

    def message(self, text: str) -> None:
        logger.info("group_message | group=%s message=%s", self.name, text)
        self.registry.context.listener.on_message(text)

    def create_all(self) -> List[Snapshot]:
        snapshots = []
        for plan in self.plans:
            self.message(f"Creating snapshot for plan: {plan.name}")
            snapshots.append(plan.create())
        logger.info("group_create_all | group=%s created=%s", self.name, len(snapshots))
        return snapshots

    def cleanup_all(self) -> Dict[str, int]:
        return {plan.name: plan.cleanup() for plan in self.plans}

    def drop_local_tables(self) -> List[str]:
        dropped: List[str] = []
        seen = set()
        for plan in self.plans:
            if plan.connection in seen:
                continue
            seen.add(plan.connection)
            dropped.extend(plan.drop_local_tables())
        return dropped

    def load_all(
        self,
        use_local_copy: bool = False,
        force_download: bool = False,
        skip_post_commands: bool = False,
        drop_tables: bool = False,
    ) -> Dict[str, Any]:
        """Load the latest snapshot of every member plan, then run group statements.

        Every snapshot is fetched before any table is dropped or restored.
        Plans without snapshots are skipped with a message.
        """
        plans = self.plans
        context = self.registry.context

        with context.scratch_lock:
            fetched: List[Tuple[Snapshot, Dict[str, Any]]] = []
            try:
                for plan in plans:
                    snapshot = plan.latest()
                    if snapshot is None:
                        self.message(f"No snapshots available for plan: {plan.name}")
                        continue
                    fetched.append(
                        (snapshot, snapshot.download(use_local_copy=use_local_copy, force_download=force_download))
                    )
            except OSError:
                self._discard_downloads(fetched)
                raise

            dropped = self.drop_local_tables() if drop_tables and fetched else []

            loaded: List[Dict[str, Any]] = []
            post_load_results: List[Dict[str, Any]] = []
            for position, (snapshot, info) in enumerate(fetched):
                plan = snapshot.plan
                self.message(f"Loading plan: {plan.name}")
                try:
                    info = snapshot.restore(info)
                except (ExecutionError, ConfigurationError):
                    self._discard_downloads(fetched[position + 1:])
                    raise
                info["plan"] = plan.name
                loaded.append(info)
                if not skip_post_commands:
                    post_load_results.extend(plan.execute_post_load_commands())

        if not skip_post_commands:
            post_load_results.extend(self.execute_post_load_commands())

        logger.info("group_load_all | group=%s loaded=%s dropped=%s", self.name, len(loaded), len(dropped))
        return {
            "group": self.name,
            "loaded": loaded,
            "dropped_tables": dropped,
            "post_load_results": post_load_results,
        }

    def _discard_downloads(self, fetched: List[Tuple[Snapshot, Dict[str, Any]]]) -> None:
        """Drop copies fetched for this load that will not be restored."""
        if self.registry.context.settings.cache_by_default:
            return
        for snapshot, info in fetched:
            if info["downloaded"]:
                snapshot.plan.local_store.delete(snapshot.local_file)

    def execute_post_load_commands(self) -> List[Dict[str, Any]]:
        """Group statements, run against the first member plan's connection."""
        if not self.post_load_sqls:
            return []
        plans = self.plans
        if not plans:
            raise ConfigurationError(f"Plan group {self.name} has no plans to run post-load statements against")
        first = plans[0]
        first.get_connection_config()
        return run_post_load_statements(
            self.registry.context,
            first.connection,
            self.post_load_sqls,
            PostLoadScope.GROUP,
            self.message,
        )
