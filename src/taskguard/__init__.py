"""taskguard — named async tasks that never overlap themselves.

┌──────────────────────────────────────────────────────────────────────────────┐
│  Quick Start:                                                                 │
│                                                                               │
│   from taskguard import TaskManager                                           │
│                                                                               │
│   manager = TaskManager()                                                     │
│   sync = manager.create_task("sync", sync_inventory)                          │
│                                                                               │
│   await sync.initiate()            # runs, or logs "busy" and returns         │
│   sync.schedule("*/5 * * * *")     # Ok(handle) | Err(ScheduleError)          │
│   ...                                                                         │
│   manager.shutdown()                                                          │
│                                                                               │
│  Components:                                                                  │
│   TaskManager ── creates ──► Task ── guarded by ──► ReentrancyGuard           │
│                                 └── schedule() ──► TriggerSource              │
│                                                     (croniter | APScheduler)  │
└──────────────────────────────────────────────────────────────────────────────┘

Limitations:
    No cancellation, timeouts, retries, persistence or cross-process
    coordination. A callback that never finishes holds its task's guard
    forever.
"""

from __future__ import annotations

from .errors import (
    DuplicateIdentifierError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    InvalidIdentifierError,
    ScheduleError,
    TaskGuardError,
    TaskNotFoundError,
)
from .logging import configure_logging, get_logger
from .result import Err, Ok, Result
from .settings import TaskGuardSettings, get_settings
from .tasks import ReentrancyGuard, RunStatus, Task, TaskManager, TaskRun, TaskStats
from .triggers import CronTriggerSource, JobHandle, TriggerSource

__version__ = "0.1.0"

__all__ = [
    "TaskManager",
    "Task",
    "TaskRun",
    "TaskStats",
    "RunStatus",
    "ReentrancyGuard",
    "TriggerSource",
    "JobHandle",
    "CronTriggerSource",
    "TaskGuardSettings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "Ok",
    "Err",
    "Result",
    "ErrorCategory",
    "ErrorContext",
    "TaskGuardError",
    "DuplicateIdentifierError",
    "InvalidIdentifierError",
    "InvalidConfigError",
    "TaskNotFoundError",
    "ScheduleError",
]
