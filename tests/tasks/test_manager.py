"""Tests for TaskManager."""

import pytest

from taskguard.errors import (
    DuplicateIdentifierError,
    ErrorCategory,
    InvalidIdentifierError,
    TaskGuardValidationError,
    TaskNotFoundError,
)
from taskguard.tasks import Task, TaskManager
from taskguard.triggers import CronTriggerSource


async def noop():
    pass


class TestCreateTask:
    """Test registration and identifier uniqueness."""

    def test_create_returns_registered_task(self, manager):
        """create_task returns the Task stored under its identifier."""
        task = manager.create_task("sync", noop)

        assert isinstance(task, Task)
        assert task.identifier == "sync"
        assert task.callback is noop
        assert manager.get("sync") is task
        assert manager["sync"] is task
        assert "sync" in manager
        assert len(manager) == 1

    def test_tasks_share_manager_source_and_settings(self, manager, trigger_source, settings):
        """Every task is built with the manager's trigger source and settings."""
        task = manager.create_task("sync", noop)

        assert task.trigger_source is trigger_source
        assert task.settings is settings

    def test_duplicate_identifier_rejected(self, manager):
        """A second task with the same identifier raises and changes nothing."""
        first = manager.create_task("sync", noop)

        async def other():
            pass

        with pytest.raises(DuplicateIdentifierError) as exc_info:
            manager.create_task("sync", other)

        error = exc_info.value
        assert str(error) == 'A task with the identifier "sync" already exists.'
        assert error.identifier == "sync"
        assert error.category == ErrorCategory.ORCHESTRATION
        assert manager["sync"] is first
        assert first.callback is noop
        assert len(manager) == 1

    def test_identifiers_are_case_sensitive(self, manager):
        """Identifiers differing only in case are distinct."""
        manager.create_task("sync", noop)
        manager.create_task("Sync", noop)

        assert len(manager) == 2

    @pytest.mark.parametrize("identifier", ["", "   ", None, 42])
    def test_invalid_identifier(self, manager, identifier):
        """Empty or non-string identifiers are rejected."""
        with pytest.raises(InvalidIdentifierError):
            manager.create_task(identifier, noop)

        assert len(manager) == 0

    def test_duplicate_checked_before_callback(self, manager):
        """A taken identifier is reported as a duplicate whatever the callback."""
        first = manager.create_task("sync", noop)

        with pytest.raises(DuplicateIdentifierError):
            manager.create_task("sync", "not a function")

        assert manager["sync"] is first

    def test_non_callable_callback(self, manager):
        """A callback that is not callable is rejected."""
        with pytest.raises(TaskGuardValidationError) as exc_info:
            manager.create_task("sync", "not a function")

        assert exc_info.value.context.task == "sync"
        assert "sync" not in manager

    def test_propagate_errors_override(self, manager):
        """propagate_errors is passed through to the task."""
        task = manager.create_task("sync", noop, propagate_errors=True)
        assert task.propagate_errors is True


class TestDecorator:
    """Test the task() decorator."""

    def test_decorator_uses_function_name(self, manager):
        """Without an identifier the function name is used."""

        @manager.task()
        async def cleanup():
            pass

        assert isinstance(cleanup, Task)
        assert manager["cleanup"] is cleanup

    def test_bare_decorator(self, manager):
        """@manager.task without parentheses registers the function."""

        @manager.task
        async def cleanup():
            pass

        assert isinstance(cleanup, Task)
        assert manager["cleanup"] is cleanup

    def test_decorator_with_identifier(self, manager):
        """An explicit identifier wins over the function name."""

        @manager.task("nightly-cleanup")
        async def cleanup():
            pass

        assert cleanup.identifier == "nightly-cleanup"
        assert "cleanup" not in manager


class TestLookup:
    """Test registry access."""

    def test_missing_task_raises(self, manager):
        """Indexing an unknown identifier raises TaskNotFoundError."""
        with pytest.raises(TaskNotFoundError) as exc_info:
            manager["missing"]

        assert str(exc_info.value) == 'No task with the identifier "missing" exists.'
        assert isinstance(exc_info.value, KeyError)

    def test_get_missing_returns_none(self, manager):
        """get() returns None for unknown identifiers."""
        assert manager.get("missing") is None

    def test_iteration_order(self, manager):
        """Iteration follows registration order."""
        for name in ("b", "a", "c"):
            manager.create_task(name, noop)

        assert list(manager) == ["b", "a", "c"]

    def test_tasks_view_is_read_only(self, manager):
        """The tasks mapping cannot be mutated."""
        manager.create_task("sync", noop)

        with pytest.raises(TypeError):
            manager.tasks["other"] = manager["sync"]


class TestLifecycle:
    """Test health and shutdown."""

    def test_health(self, manager):
        """health() reports backend and per-task state."""
        manager.create_task("sync", noop)
        manager["sync"].schedule("0 * * * *", "UTC")

        health = manager.health()

        assert health["backend"] == "fake"
        assert health["running"] == []
        assert health["tasks"]["sync"]["jobs"][0]["timezone"] == "UTC"

    def test_shutdown_stops_every_job(self, trigger_source, settings):
        """shutdown() unschedules all tasks and stops the source."""
        manager = TaskManager(trigger_source=trigger_source, settings=settings)
        first = manager.create_task("first", noop).schedule().unwrap()
        second = manager.create_task("second", noop).schedule().unwrap()

        manager.shutdown()

        assert first.stop_calls >= 1
        assert second.stop_calls >= 1
        assert not first.running
        assert trigger_source.shutdown_calls == 1
        assert manager["first"].jobs == []

    def test_shutdown_twice(self, trigger_source, settings):
        """A second shutdown() is harmless."""
        manager = TaskManager(trigger_source=trigger_source, settings=settings)
        manager.create_task("sync", noop).schedule()

        manager.shutdown()
        manager.shutdown()

        assert trigger_source.shutdown_calls == 2

    def test_context_manager(self, trigger_source, settings):
        """Leaving the with-block shuts the manager down."""
        with TaskManager(trigger_source=trigger_source, settings=settings) as manager:
            handle = manager.create_task("sync", noop).schedule().unwrap()
            assert handle.running

        assert not handle.running
        assert trigger_source.shutdown_calls == 1

    def test_default_trigger_source_from_settings(self, settings):
        """Without a trigger source the configured backend is built."""
        manager = TaskManager(settings=settings)

        assert isinstance(manager.trigger_source, CronTriggerSource)
