"""Trigger sources for scheduled tasks.

Backends:
    - CronTriggerSource: croniter + asyncio (default, no extra needed)
    - APSchedulerTriggerSource: APScheduler 3.x (pip install taskguard[apscheduler])

Guardrails:
    ❌ Waiting for the task run inside ``on_fire``
    ✅ ``on_fire`` spawns the run and returns; the task guard absorbs overlap
    ❌ Importing APScheduler eagerly
    ✅ ``create_trigger_source(settings)`` or the lazy module attribute
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from taskguard.errors import InvalidConfigError

from .cron import CronJobHandle, CronTriggerSource
from .protocol import FireCallback, JobHandle, TriggerSource, resolve_timezone

if TYPE_CHECKING:
    from taskguard.settings import TaskGuardSettings


def __getattr__(name: str):  # noqa: N807
    """Lazy import optional backends to avoid ImportError when extras are missing."""
    if name == "APSchedulerTriggerSource":
        from .apscheduler_backend import APSchedulerTriggerSource

        return APSchedulerTriggerSource
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def create_trigger_source(settings: TaskGuardSettings) -> TriggerSource:
    """Build the trigger source named by ``settings.trigger_backend``."""
    backend = settings.trigger_backend
    if backend == "cron":
        return CronTriggerSource()
    if backend == "apscheduler":
        from .apscheduler_backend import APSchedulerTriggerSource

        return APSchedulerTriggerSource()
    raise InvalidConfigError(f"Unknown trigger backend: {backend!r}").with_context(
        backend=backend
    )


__all__ = [
    "TriggerSource",
    "JobHandle",
    "FireCallback",
    "resolve_timezone",
    "CronTriggerSource",
    "CronJobHandle",
    "APSchedulerTriggerSource",
    "create_trigger_source",
]
