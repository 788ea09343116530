"""APScheduler-based trigger source.

Wraps APScheduler 3.x ``AsyncIOScheduler`` so cron jobs share one scheduler
and its misfire handling. Requires the ``[apscheduler]`` extra::

    pip install taskguard[apscheduler]

Jobs are registered as coroutine functions that call ``on_fire`` and return
at once, so they execute on the event loop and APScheduler's own
``max_instances`` limit never kicks in. Overlap is left to the task guard.

.. note::

    For most use cases the default ``CronTriggerSource`` is sufficient.
    Use this backend when the application already runs an APScheduler
    instance and wants taskguard jobs on it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from taskguard.logging import get_logger

from .protocol import FireCallback, resolve_timezone

logger = get_logger(__name__)


def _require_apscheduler():
    """Validate that apscheduler is installed."""
    try:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from apscheduler.triggers.cron import CronTrigger
    except ImportError:
        raise ImportError(
            "APScheduler is required for APSchedulerTriggerSource. "
            "Install it with: pip install taskguard[apscheduler]"
        ) from None
    return AsyncIOScheduler, CronTrigger


class APSchedulerJobHandle:
    """Handle wrapping an APScheduler ``Job``."""

    def __init__(self, job: Any, expression: str, timezone: str, name: str | None) -> None:
        self.job = job
        self.name = name
        self.expression = expression
        self.timezone = timezone
        self._stopped = False

    @property
    def running(self) -> bool:
        return not self._stopped

    @property
    def next_fire_time(self) -> datetime | None:
        if self._stopped:
            return None
        return getattr(self.job, "next_run_time", None)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        try:
            self.job.remove()
        except LookupError:
            # Already gone (scheduler shut down or job removed elsewhere).
            logger.debug("APScheduler job already removed", job=self.name)

    def __repr__(self) -> str:
        return (
            f"APSchedulerJobHandle(name={self.name!r}, expression={self.expression!r}, "
            f"timezone={self.timezone!r}, running={self.running})"
        )


class APSchedulerTriggerSource:
    """Trigger source backed by APScheduler's ``AsyncIOScheduler``.

    The scheduler is started lazily by the first ``add`` call, which must
    therefore happen while the event loop is running.

    Example::

        >>> source = APSchedulerTriggerSource()
        >>> handle = source.add("*/5 * * * *", on_fire, "UTC", name="sync")
        >>> # … later …
        >>> source.shutdown()
    """

    name: str = "apscheduler"

    def __init__(self, scheduler: Any | None = None) -> None:
        AsyncIOScheduler, CronTrigger = _require_apscheduler()  # noqa: N806
        self._cron_trigger = CronTrigger
        self._scheduler = scheduler if scheduler is not None else AsyncIOScheduler()
        self._handles: list[APSchedulerJobHandle] = []

    @property
    def scheduler(self) -> Any:
        return self._scheduler

    def add(
        self,
        expression: str,
        on_fire: FireCallback,
        timezone: str = "default",
        *,
        name: str | None = None,
    ) -> APSchedulerJobHandle:
        tz = resolve_timezone(timezone)
        trigger = self._cron_trigger.from_crontab(expression, timezone=tz)

        async def _fire() -> None:
            on_fire()

        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("APScheduler started")

        job = self._scheduler.add_job(
            _fire,
            trigger,
            name=name,
            misfire_grace_time=60,
            coalesce=True,
        )
        handle = APSchedulerJobHandle(job, expression, timezone, name)
        self._handles.append(handle)
        logger.debug(
            "APScheduler job registered",
            job=name,
            expression=expression,
            timezone=timezone,
        )
        return handle

    def shutdown(self) -> None:
        for handle in self._handles:
            handle.stop()
        self._handles.clear()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("APScheduler stopped")

    def health(self) -> dict[str, Any]:
        """Return backend health status."""
        running = bool(self._scheduler.running)
        return {
            "healthy": running,
            "backend": self.name,
            "scheduled_jobs": len(self._scheduler.get_jobs()) if running else 0,
        }
