"""APScheduler configuration for periodic snapshot creation.

Responsibilities:
- Provide a singleton `BackgroundScheduler` with a single worker thread, so
  scheduled dumps never overlap in the shared local scratch area
- Add one cron job per plan that declares a `schedule`
- Execute a scheduled plan: reload the registry, create, then apply retention
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from dbsnapshots.core.config import SnapshotsSettings
from dbsnapshots.core.errors import SnapshotError

if TYPE_CHECKING:  # pragma: no cover
    from dbsnapshots.services.registry import PlanRegistry


logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None

# Reserved LogRecord attributes that cannot be passed through `extra`
_RESERVED_LOG_KEYS = frozenset(
    {
        "name",
        "msg",
        "message",
        "asctime",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "args",
    }
)


def _log_event(event_name: str, level: int = logging.INFO, **fields: object) -> None:
    """Emit an 'event | k=v ...' line with the same fields attached via `extra`."""
    if not fields:
        logger.log(level, "%s", event_name, extra={"event": event_name})
        return
    keys = sorted(fields.keys())
    msg = "%s | " + " ".join(f"{k}=%s" for k in keys)
    extra: dict = {"event": event_name}
    for key, value in fields.items():
        extra[key if key not in _RESERVED_LOG_KEYS else f"field_{key}"] = value
    logger.log(level, msg, event_name, *(fields[k] for k in keys), extra=extra)


def get_scheduler(timezone: str = "UTC") -> BackgroundScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(
            timezone=timezone,
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
            },
        )
        _log_event("scheduler_created", timezone=timezone, workers=1)
    return _scheduler


def reset_scheduler() -> None:
    """Drop the global instance (shutting it down if running)."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None


def run_scheduled_plan(plan_name: str, registry_factory: Callable[[], "PlanRegistry"]) -> dict:
    """Entry point for APScheduler: create a snapshot for one plan and apply retention.

    Returns a summary dict; failures are logged, not raised, so one bad run
    does not unschedule the plan.
    """
    _log_event("scheduled_plan_start", plan=plan_name)
    try:
        registry = registry_factory()
        registry.load_all()
        plan = registry.find(plan_name)
        if plan is None:
            _log_event("scheduled_plan_missing", level=logging.WARNING, plan=plan_name)
            return {"plan": plan_name, "created": None, "removed": 0, "skipped": True}
        if not plan.can_create():
            _log_event(
                "scheduled_plan_locked",
                level=logging.WARNING,
                plan=plan_name,
                environment=registry.context.settings.environment,
                required=plan.environment_locks.create,
            )
            return {"plan": plan_name, "created": None, "removed": 0, "skipped": True}
        snapshot = plan.create()
        removed = plan.cleanup()
    except SnapshotError as exc:
        logger.exception("scheduled_plan_failed | plan=%s error=%s", plan_name, exc)
        return {"plan": plan_name, "created": None, "removed": 0, "skipped": False, "error": str(exc)}

    _log_event("scheduled_plan_complete", plan=plan_name, file=snapshot.file_name, removed=removed)
    return {"plan": plan_name, "created": snapshot.file_name, "removed": removed, "skipped": False}


def schedule_plans(
    scheduler: BackgroundScheduler,
    settings: SnapshotsSettings,
    registry_factory: Callable[[], "PlanRegistry"],
) -> int:
    """Add a cron job for every plan with a `schedule`; returns the number scheduled."""
    # In tests, a dummy scheduler may be provided without `add_job`.
    if not hasattr(scheduler, "add_job"):
        return 0

    scheduled_count = 0
    invalid_count = 0
    for plan_name, plan_config in settings.plans.items():
        if not plan_config.schedule:
            continue
        try:
            trigger = CronTrigger.from_crontab(plan_config.schedule, timezone=settings.timezone)
        except ValueError:
            _log_event("invalid_cron", level=logging.WARNING, plan=plan_name, schedule=plan_config.schedule)
            invalid_count += 1
            continue

        scheduler.add_job(
            func=run_scheduled_plan,
            trigger=trigger,
            id=f"plan:{plan_name}",
            name=plan_name,
            replace_existing=True,
            kwargs={"plan_name": plan_name, "registry_factory": registry_factory},
            max_instances=1,
        )
        scheduled_count += 1
        _log_event("plan_scheduled", plan=plan_name, schedule=plan_config.schedule)

    _log_event("scheduler_load_plans_done", scheduled=scheduled_count, invalid_cron=invalid_count)
    return scheduled_count
