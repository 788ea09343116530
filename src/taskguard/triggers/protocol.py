"""Trigger source protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TRIGGER SOURCE PROTOCOL                                                      │
│                                                                               │
│  A trigger source fires a callback on every occurrence of a recurring cron    │
│  expression.  It only controls WHEN; the Task decides WHETHER a run may       │
│  start (re-entrancy guard).                                                   │
│                                                                               │
│   ┌──────────────────────┐    on_fire()    ┌─────────────────────────────┐   │
│   │  CronTriggerSource   │ ──────────────► │  Task._fire                 │   │
│   │  (croniter, default) │                 │    └── spawn initiate()     │   │
│   └──────────────────────┘                 │          ├── guard free: run│   │
│   ┌──────────────────────┐    on_fire()    │          └── busy: warn     │   │
│   │  APScheduler         │ ──────────────► │                             │   │
│   │  TriggerSource       │                 └─────────────────────────────┘   │
│   └──────────────────────┘                                                    │
│                                                                               │
│  Contract:                                                                    │
│  - add() raises on a malformed expression or unknown timezone                │
│  - on_fire() is called on the event loop and must not block                  │
│  - the source never waits for the work on_fire starts                        │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, tzinfo
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tzlocal import get_localzone

from taskguard.errors import InvalidConfigError

FireCallback = Callable[[], None]

LOCAL_TIMEZONE_NAMES = frozenset({"default", "local"})


@runtime_checkable
class JobHandle(Protocol):
    """Opaque reference to one registered recurring trigger."""

    name: str | None
    expression: str
    timezone: str

    @property
    def running(self) -> bool:
        """Whether the trigger is still armed."""
        ...

    @property
    def next_fire_time(self) -> datetime | None:
        """When the trigger fires next, or None once stopped."""
        ...

    def stop(self) -> None:
        """Disarm the trigger. Calling it again is a no-op."""
        ...


@runtime_checkable
class TriggerSource(Protocol):
    """Protocol for pluggable trigger backends.

    Implementations:
        - CronTriggerSource: croniter + asyncio (default)
        - APSchedulerTriggerSource: APScheduler 3.x (requires [apscheduler] extra)

    Example (custom source):
        >>> class MySource:
        ...     name = "custom"
        ...
        ...     def add(self, expression, on_fire, timezone="default", *, name=None):
        ...         return my_engine.every(expression, on_fire, tz=timezone)
        ...
        ...     def shutdown(self):
        ...         my_engine.stop()
    """

    name: str

    def add(
        self,
        expression: str,
        on_fire: FireCallback,
        timezone: str = "default",
        *,
        name: str | None = None,
    ) -> JobHandle:
        """Register *on_fire* to run on every occurrence of *expression*.

        Args:
            expression: Five-field cron expression.
            on_fire: Non-blocking callback invoked on the event loop.
            timezone: IANA name, or "default" for the local timezone.
            name: Optional label for diagnostics.

        Raises:
            ValueError: the expression cannot be parsed.
            InvalidConfigError: the timezone is unknown.
        """
        ...

    def shutdown(self) -> None:
        """Stop every job this source created."""
        ...


def resolve_timezone(name: str | None) -> tzinfo:
    """Map a timezone name to a tzinfo.

    ``None``, ``"default"`` and ``"local"`` resolve to the process-local
    zone (DST-aware, via tzlocal); anything else is looked up in the IANA
    database.
    """
    if name is None or name.strip().lower() in LOCAL_TIMEZONE_NAMES:
        try:
            return get_localzone()
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidConfigError(
                "Could not determine the local timezone.", cause=e
            ).with_context(timezone=name) from e
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidConfigError(f"Unknown timezone: {name!r}", cause=e).with_context(
            timezone=name
        ) from e
