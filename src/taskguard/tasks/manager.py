"""Task registry.

Manifesto:
    Identifiers name tasks in logs and schedules, so two tasks sharing one
    would make both ambiguous. The manager owns the identifier namespace,
    builds every Task with the same trigger source and settings, and is
    the single place that can dispose of all scheduled jobs.

Tags:
    taskguard, registry, tasks, lifecycle

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from types import MappingProxyType, TracebackType
from typing import TYPE_CHECKING, Any

from taskguard.errors import (
    DuplicateIdentifierError,
    InvalidIdentifierError,
    TaskGuardValidationError,
    TaskNotFoundError,
)
from taskguard.logging import get_logger
from taskguard.settings import TaskGuardSettings, get_settings
from taskguard.triggers import create_trigger_source

from .task import Task, TaskCallback

if TYPE_CHECKING:
    from taskguard.triggers.protocol import TriggerSource

logger = get_logger(__name__)


class TaskManager:
    """Creates and owns Tasks, enforcing identifier uniqueness.

    Example:
        >>> manager = TaskManager()
        >>> sync = manager.create_task("sync", sync_inventory)
        >>> sync.schedule("*/5 * * * *")
        >>>
        >>> @manager.task("cleanup")
        ... async def cleanup():
        ...     await purge_expired_sessions()
        >>>
        >>> manager["cleanup"] is cleanup
        True
        >>> manager.shutdown()
    """

    def __init__(
        self,
        trigger_source: TriggerSource | None = None,
        settings: TaskGuardSettings | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            trigger_source: Backend shared by every task's ``schedule()``.
                Built from ``settings.trigger_backend`` when omitted.
            settings: Defaults handed to every task. Loaded from the
                environment when omitted.
        """
        self.settings = settings or get_settings()
        self.trigger_source = (
            trigger_source
            if trigger_source is not None
            else create_trigger_source(self.settings)
        )
        self._tasks: dict[str, Task] = {}

    @property
    def tasks(self) -> Mapping[str, Task]:
        """Read-only view of identifier → Task."""
        return MappingProxyType(self._tasks)

    def create_task(
        self,
        identifier: str,
        callback: TaskCallback,
        *,
        propagate_errors: bool | None = None,
    ) -> Task:
        """Register and return a new Task.

        Args:
            identifier: Unique, non-empty label.
            callback: Zero-argument callable returning an awaitable.
            propagate_errors: See ``Task.__init__``.

        Raises:
            DuplicateIdentifierError: identifier already registered. The
                existing task is left untouched.
            InvalidIdentifierError: identifier is empty or not a string.
            TaskGuardValidationError: callback is not callable.
        """
        if not isinstance(identifier, str) or not identifier.strip():
            raise InvalidIdentifierError(identifier)
        if identifier in self._tasks:
            raise DuplicateIdentifierError(identifier)
        if not callable(callback):
            raise TaskGuardValidationError(
                f"Callback for task {identifier!r} is not callable."
            ).with_context(task=identifier)

        task = Task(
            identifier,
            callback,
            trigger_source=self.trigger_source,
            settings=self.settings,
            propagate_errors=propagate_errors,
        )
        self._tasks[identifier] = task
        logger.debug("Task registered", task=identifier)
        return task

    def task(
        self, identifier: str | TaskCallback | None = None
    ) -> Task | Callable[[TaskCallback], Task]:
        """Decorator form of ``create_task``; the decorated name becomes the Task.

        Usable bare (``@manager.task``) or called (``@manager.task("name")``).
        """
        if callable(identifier):
            return self.create_task(identifier.__name__, identifier)

        def decorator(func: TaskCallback) -> Task:
            return self.create_task(identifier or func.__name__, func)

        return decorator

    def get(self, identifier: str) -> Task | None:
        return self._tasks.get(identifier)

    def __getitem__(self, identifier: str) -> Task:
        try:
            return self._tasks[identifier]
        except KeyError:
            raise TaskNotFoundError(identifier) from None

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._tasks

    def __iter__(self) -> Iterator[str]:
        return iter(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def health(self) -> dict[str, Any]:
        """Snapshot of every task's state."""
        return {
            "backend": self.trigger_source.name,
            "tasks": {name: task.to_dict() for name, task in self._tasks.items()},
            "running": sorted(name for name, task in self._tasks.items() if task.running),
        }

    def shutdown(self) -> None:
        """Stop every scheduled job and the trigger source. Safe to call twice."""
        stopped = sum(task.unschedule() for task in self._tasks.values())
        self.trigger_source.shutdown()
        logger.info("TaskManager shut down", tasks=len(self._tasks), jobs_stopped=stopped)

    def __enter__(self) -> TaskManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()
