"""Guarded tasks and the registry that owns them."""

from __future__ import annotations

from .guard import ReentrancyGuard
from .manager import TaskManager
from .task import RunStatus, Task, TaskCallback, TaskRun, TaskStats

__all__ = [
    "ReentrancyGuard",
    "RunStatus",
    "Task",
    "TaskCallback",
    "TaskManager",
    "TaskRun",
    "TaskStats",
]
