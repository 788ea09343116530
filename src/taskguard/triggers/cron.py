"""croniter + asyncio trigger source.

This is the DEFAULT trigger source. Each registered job is one asyncio task
that sleeps until the next cron occurrence and then calls ``on_fire``.

┌──────────────────────────────────────────────────────────────────────────────┐
│  CronTriggerSource.add(expression, on_fire, timezone)                         │
│      │                                                                        │
│      ├── resolve_timezone(timezone)                                           │
│      ├── croniter(expression, now)          raises on malformed expression    │
│      └── CronJobHandle.start()              requires a running event loop     │
│              │                                                                │
│              ▼                                                                │
│   ┌─────────────────────────────────────────────────────────┐                │
│   │   while True:                                           │                │
│   │       next_fire = croniter(expr, now).get_next()        │                │
│   │       await sleep(next_fire - now)                      │                │
│   │       fire_count += 1                                   │                │
│   │       on_fire()              ◄── never awaited          │                │
│   └─────────────────────────────────────────────────────────┘                │
│                                                                               │
│  Ticks missed while the loop was blocked are dropped, not replayed.           │
│  handle.stop() cancels the asyncio task.                                      │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, tzinfo

from croniter import croniter

from taskguard.logging import get_logger

from .protocol import FireCallback, resolve_timezone

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class CronJobHandle:
    """Handle for one cron job driven by an asyncio task."""

    def __init__(
        self,
        expression: str,
        on_fire: FireCallback,
        timezone: str,
        tz: tzinfo,
        *,
        name: str | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.name = name
        self.expression = expression
        self.timezone = timezone
        self.fire_count = 0
        self.last_fire: datetime | None = None
        self._tz = tz
        self._on_fire = on_fire
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        # Parsed here so a malformed expression fails at registration.
        self._next: datetime | None = self._next_after(datetime.now(tz))

    def _next_after(self, previous: datetime) -> datetime:
        # Rebased on the current time so ticks missed during a stall are
        # dropped rather than fired back-to-back.
        base = max(previous, datetime.now(self._tz))
        return croniter(self.expression, base).get_next(datetime)

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(
            self._run(), name=f"taskguard-cron:{self.name or self.expression}"
        )

    async def _run(self) -> None:
        while True:
            delay = (self._next - datetime.now(self._tz)).total_seconds()
            await self._sleep(max(0.0, delay))

            self.fire_count += 1
            self.last_fire = datetime.now(self._tz)
            try:
                self._on_fire()
            except Exception:
                logger.exception(
                    "Trigger callback failed",
                    job=self.name,
                    expression=self.expression,
                )
            self._next = self._next_after(self._next)

    @property
    def running(self) -> bool:
        return not self._stopped and self._task is not None and not self._task.done()

    @property
    def next_fire_time(self) -> datetime | None:
        return self._next if self.running else None

    def stop(self) -> None:
        if self.running:
            self._stopped = True
            self._task.cancel()
            logger.debug("Cron job stopped", job=self.name, fires=self.fire_count)
        self._next = None

    def __repr__(self) -> str:
        return (
            f"CronJobHandle(name={self.name!r}, expression={self.expression!r}, "
            f"timezone={self.timezone!r}, running={self.running})"
        )


class CronTriggerSource:
    """Default trigger source built on croniter and the running event loop.

    Example:
        >>> source = CronTriggerSource()
        >>> handle = source.add("0 3 * * *", lambda: print("tick"), "Europe/Berlin")
        >>> handle.next_fire_time
        datetime.datetime(2026, 10, 20, 3, 0, tzinfo=zoneinfo.ZoneInfo(key='Europe/Berlin'))
        >>> source.shutdown()
    """

    name = "cron"

    def __init__(self, *, sleep: SleepFunc = asyncio.sleep) -> None:
        self._sleep = sleep
        self._handles: list[CronJobHandle] = []

    def add(
        self,
        expression: str,
        on_fire: FireCallback,
        timezone: str = "default",
        *,
        name: str | None = None,
    ) -> CronJobHandle:
        tz = resolve_timezone(timezone)
        handle = CronJobHandle(
            expression, on_fire, timezone, tz, name=name, sleep=self._sleep
        )
        handle.start()
        self._handles.append(handle)
        logger.debug(
            "Cron job registered",
            job=name,
            expression=expression,
            timezone=timezone,
        )
        return handle

    @property
    def jobs(self) -> list[CronJobHandle]:
        return [h for h in self._handles if h.running]

    def shutdown(self) -> None:
        for handle in self._handles:
            handle.stop()
        self._handles.clear()
