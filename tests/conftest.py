"""
Shared pytest fixtures for taskguard tests.

This module provides:
- structlog / settings reset between tests for isolation
- A controllable monotonic clock
- An in-memory trigger source that records registrations
"""

from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import structlog

# Ensure taskguard package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from taskguard.settings import TaskGuardSettings, get_settings
from taskguard.tasks import TaskManager


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Reset structlog configuration and the cached settings around each test."""
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    get_settings.cache_clear()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    get_settings.cache_clear()


# =============================================================================
# Doubles
# =============================================================================


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeJobHandle:
    """JobHandle that records stop() calls."""

    def __init__(self, expression: str, on_fire, timezone: str, name: str | None) -> None:
        self.expression = expression
        self.timezone = timezone
        self.name = name
        self.on_fire = on_fire
        self.stop_calls = 0
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def next_fire_time(self) -> datetime | None:
        if not self._running:
            return None
        return datetime(2026, 1, 1, tzinfo=UTC) + timedelta(minutes=5)

    def stop(self) -> None:
        self.stop_calls += 1
        self._running = False


class FakeTriggerSource:
    """TriggerSource that never fires on its own; tests call ``fire()``."""

    name = "fake"

    def __init__(self) -> None:
        self.handles: list[FakeJobHandle] = []
        self.fail_with: Exception | None = None
        self.shutdown_calls = 0

    def add(self, expression, on_fire, timezone="default", *, name=None):
        if self.fail_with is not None:
            raise self.fail_with
        handle = FakeJobHandle(expression, on_fire, timezone, name)
        self.handles.append(handle)
        return handle

    def fire(self, index: int = -1) -> None:
        self.handles[index].on_fire()

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        for handle in self.handles:
            handle.stop()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> TaskGuardSettings:
    """Deterministic settings (no .env, no immediate run on schedule)."""
    return TaskGuardSettings(
        _env_file=None,
        default_expression="*/5 * * * *",
        timezone="default",
        trigger_backend="cron",
        run_on_schedule=False,
        propagate_callback_errors=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def trigger_source() -> FakeTriggerSource:
    return FakeTriggerSource()


@pytest.fixture
def manager(trigger_source, settings):
    manager = TaskManager(trigger_source=trigger_source, settings=settings)
    yield manager
    manager.shutdown()
