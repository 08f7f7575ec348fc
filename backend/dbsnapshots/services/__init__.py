"""Service layer for snapshot plans.

Exposes:
- SnapshotContext
- SnapshotPlan
- Snapshot
- PlanRegistry
- PlanGroup
"""

from .context import SnapshotContext
from .file_templates import FileTemplate
from .snapshots import Snapshot, format_bytes
from .plans import SnapshotPlan
from .registry import PlanRegistry, RegistryLoad
from .plan_groups import PlanGroup

__all__ = [
    "SnapshotContext",
    "FileTemplate",
    "Snapshot",
    "format_bytes",
    "SnapshotPlan",
    "PlanRegistry",
    "RegistryLoad",
    "PlanGroup",
]
