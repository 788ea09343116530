"""Guarded task — one named unit of async work that never overlaps itself.

Manifesto:
    Periodic maintenance jobs (cleanup, polling, synchronisation) must not
    run twice at once: overlapping runs corrupt state or waste resources.
    A Task wraps a callback in a re-entrancy guard. A second ``initiate()``
    while a run is in flight is dropped with a warning, never queued. The
    guard is released on every exit path, so a failing callback cannot
    wedge the task in the "running" state.

Tags:
    taskguard, tasks, re-entrancy, scheduling, asyncio

Doc-Types:
    api-reference


    Task Lifecycle::

        initiate()
           │
           ├── guard busy ──► warn "running for N.NN seconds" ──► TaskRun(SKIPPED)
           │
           └── guard free ──► running=True, started=now
                                  │
                                  ▼
                             await callback()
                                  │
                     ┌────────────┴────────────┐
                   success                   failure
                     │                          │
                     ▼                          ▼
              TaskRun(COMPLETED)     log + TaskRun(FAILED)  (or re-raise)
                     └──────── finally: running=False ────────┘

        schedule(expression, timezone)
           └── trigger_source.add(expression, _fire, timezone)
                  _fire() spawns initiate() without waiting for it
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from taskguard.errors import ScheduleError
from taskguard.logging import get_logger
from taskguard.result import Err, Ok, Result
from taskguard.settings import TaskGuardSettings, get_settings

from .guard import Clock, ReentrancyGuard

if TYPE_CHECKING:
    from taskguard.triggers.protocol import JobHandle, TriggerSource

logger = get_logger(__name__)

TaskCallback = Callable[[], Awaitable[Any] | Any]


class RunStatus(str, Enum):
    """Outcome of one ``initiate()`` call."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class TaskRun:
    """Report returned by ``Task.initiate``.

    ``elapsed`` is the run duration for COMPLETED/FAILED, and for SKIPPED
    how long the blocking run had been going.
    """

    identifier: str
    status: RunStatus
    elapsed: float
    error: BaseException | None = None

    @property
    def ran(self) -> bool:
        return self.status is not RunStatus.SKIPPED

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "status": self.status.value,
            "elapsed": round(self.elapsed, 3),
            "error": repr(self.error) if self.error is not None else None,
        }


@dataclass
class TaskStats:
    """Counters for a task."""

    runs_started: int = 0
    runs_completed: int = 0
    runs_failed: int = 0
    runs_skipped: int = 0
    last_duration: float | None = None
    last_error: str | None = None


class Task:
    """A named, guarded unit of asynchronous work.

    Tasks are normally created through ``TaskManager.create_task`` so that
    identifiers stay unique; constructing one directly is fine for tests or
    one-off use.

    Example:
        >>> async def cleanup():
        ...     await purge_expired_sessions()
        >>> task = Task("cleanup", cleanup, trigger_source=CronTriggerSource())
        >>> run = await task.initiate()
        >>> run.status
        <RunStatus.COMPLETED: 'completed'>
        >>> task.schedule("0 * * * *", "UTC")
        Ok(CronJobHandle(name='cleanup', expression='0 * * * *', timezone='UTC', running=True))
    """

    def __init__(
        self,
        identifier: str,
        callback: TaskCallback,
        *,
        trigger_source: TriggerSource | None = None,
        settings: TaskGuardSettings | None = None,
        propagate_errors: bool | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize a task.

        Args:
            identifier: Unique label, used in every log line.
            callback: Zero-argument callable returning an awaitable.
            trigger_source: Backend used by ``schedule()``.
            settings: Defaults for ``schedule()`` and error propagation.
            propagate_errors: Re-raise callback failures from ``initiate()``
                after the guard is released. Defaults to
                ``settings.propagate_callback_errors``.
            clock: Monotonic clock, injectable for tests.
        """
        self.identifier = identifier
        self.callback = callback
        self.settings = settings or get_settings()
        self.trigger_source = trigger_source
        self.propagate_errors = (
            self.settings.propagate_callback_errors
            if propagate_errors is None
            else propagate_errors
        )
        self.stats = TaskStats()
        self._clock = clock
        self._guard = ReentrancyGuard(clock)
        self._jobs: list[JobHandle] = []
        self._inflight: set[asyncio.Task[TaskRun]] = set()
        self._log = logger.bind(task=identifier)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        """True exactly while a callback invocation is in flight."""
        return self._guard.locked

    @property
    def started(self) -> float | None:
        """Monotonic start time of the current run, None while idle."""
        return self._guard.started

    def elapsed(self) -> float | None:
        return self._guard.elapsed()

    @property
    def jobs(self) -> list[JobHandle]:
        return list(self._jobs)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def initiate(self) -> TaskRun:
        """Run the callback unless a previous run is still in flight.

        Returns:
            TaskRun describing whether the callback ran and how it ended.

        Raises:
            Exception: the callback's failure, only when ``propagate_errors``
                is set. The guard is released first.
        """
        if not self._guard.try_acquire():
            elapsed = self._guard.elapsed() or 0.0
            self.stats.runs_skipped += 1
            self._log.warning(
                f'Could not start task "{self.identifier}" as it is currently running. '
                f"The task has been running for {elapsed:.2f} seconds.",
                elapsed_seconds=round(elapsed, 2),
            )
            return TaskRun(self.identifier, RunStatus.SKIPPED, elapsed)

        started = self._guard.started
        self.stats.runs_started += 1
        self._log.debug("Task started")
        try:
            result = self.callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            duration = self._clock() - started
            self.stats.runs_failed += 1
            self.stats.last_duration = duration
            self.stats.last_error = repr(e)
            self._log.exception("Task failed", duration=round(duration, 3))
            if self.propagate_errors:
                raise
            return TaskRun(self.identifier, RunStatus.FAILED, duration, e)
        finally:
            self._guard.release()

        duration = self._clock() - started
        self.stats.runs_completed += 1
        self.stats.last_duration = duration
        self._log.debug("Task completed", duration=round(duration, 3))
        return TaskRun(self.identifier, RunStatus.COMPLETED, duration)

    def _fire(self) -> None:
        """Trigger callback: start a run in the background and return."""
        run = asyncio.get_running_loop().create_task(
            self.initiate(), name=f"taskguard:{self.identifier}"
        )
        self._inflight.add(run)
        run.add_done_callback(self._run_done)

    def _run_done(self, run: asyncio.Task[TaskRun]) -> None:
        self._inflight.discard(run)
        # Failures were already logged by initiate(); retrieve them so
        # asyncio does not report "exception was never retrieved".
        if not run.cancelled():
            run.exception()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule(
        self,
        expression: str | None = None,
        timezone: str | None = None,
        *,
        run_immediately: bool | None = None,
    ) -> Result[JobHandle]:
        """Attach a recurring trigger that calls ``initiate()``.

        Fires that land while a run is in flight are absorbed by the guard
        (logged as busy, not queued).

        Args:
            expression: Cron expression; defaults to ``settings.default_expression``
                (every five minutes).
            timezone: Timezone the expression is evaluated in; defaults to
                ``settings.timezone`` ("default" = process-local timezone).
            run_immediately: Also start one run right away; defaults to
                ``settings.run_on_schedule``.

        Returns:
            Ok(handle) on success, Err(ScheduleError) when the trigger could
            not be created. Never raises.
        """
        expression = expression if expression is not None else self.settings.default_expression
        timezone = timezone if timezone is not None else self.settings.timezone
        if run_immediately is None:
            run_immediately = self.settings.run_on_schedule

        if self.trigger_source is None:
            error = ScheduleError("No trigger source configured.").with_context(
                task=self.identifier, expression=expression, timezone=timezone
            )
            self._log.error("Failed to start job.", error=error.message)
            return Err(error)

        try:
            handle = self.trigger_source.add(
                expression, self._fire, timezone, name=self.identifier
            )
        except Exception as e:
            error = ScheduleError("Failed to start job.", cause=e).with_context(
                task=self.identifier,
                expression=expression,
                timezone=timezone,
                backend=self.trigger_source.name,
            )
            self._log.error(
                "Failed to start job.",
                expression=expression,
                timezone=timezone,
                exc_info=e,
            )
            return Err(error)

        self._jobs.append(handle)
        self._log.info(
            "Task scheduled",
            expression=expression,
            timezone=timezone,
            next_fire_time=str(handle.next_fire_time),
        )
        if run_immediately:
            try:
                self._fire()
            except RuntimeError:
                self._log.warning("No running event loop; initial run skipped")
        return Ok(handle)

    def unschedule(self) -> int:
        """Stop every trigger this task created. Returns how many were running."""
        stopped = 0
        for handle in self._jobs:
            if handle.running:
                stopped += 1
            handle.stop()
        self._jobs.clear()
        if stopped:
            self._log.info("Task unscheduled", jobs=stopped)
        return stopped

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        elapsed = self.elapsed()
        return {
            "identifier": self.identifier,
            "running": self.running,
            "elapsed": round(elapsed, 2) if elapsed is not None else None,
            "stats": asdict(self.stats),
            "jobs": [
                {
                    "expression": h.expression,
                    "timezone": h.timezone,
                    "running": h.running,
                    "next_fire_time": (
                        h.next_fire_time.isoformat() if h.next_fire_time else None
                    ),
                }
                for h in self._jobs
            ],
        }

    def __repr__(self) -> str:
        return f"Task({self.identifier!r}, running={self.running})"
