"""Settings for taskguard.

Defaults for scheduling (cron expression, timezone, trigger backend) and
runtime behaviour (immediate first run, callback error propagation) are
read from ``TASKGUARD_*`` environment variables or a ``.env`` file.

Examples:
    >>> import os
    >>> os.environ["TASKGUARD_TRIGGER_BACKEND"] = "apscheduler"
    >>> TaskGuardSettings().trigger_backend
    'apscheduler'

Tags:
    settings, configuration, pydantic, environment, taskguard
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXPRESSION = "*/5 * * * *"
DEFAULT_TIMEZONE = "default"


class TaskGuardSettings(BaseSettings):
    """Settings shared by a TaskManager and the tasks it creates.

    Fields
    ──────
    default_expression        : Cron expression used when ``schedule()`` gets none
    timezone                  : Timezone used when ``schedule()`` gets none
                                ("default" is the process-local timezone)
    trigger_backend           : "cron" (croniter + asyncio) or "apscheduler"
    run_on_schedule           : Start one run as soon as a task is scheduled
    propagate_callback_errors : Re-raise callback failures from ``initiate()``
    log_level                 : Level for ``configure_logging``
    log_json                  : JSON output (None = auto-detect from tty)
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    default_expression: str = Field(
        default=DEFAULT_EXPRESSION,
        description="Cron expression used when none is given",
    )
    timezone: str = DEFAULT_TIMEZONE
    trigger_backend: Literal["cron", "apscheduler"] = "cron"
    run_on_schedule: bool = True

    # ── Execution ────────────────────────────────────────────────
    propagate_callback_errors: bool = False

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    @field_validator("default_expression")
    @classmethod
    def _strip_expression(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("default_expression must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"unknown log level {value!r}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> TaskGuardSettings:
    """Cached settings, loaded once per process."""
    return TaskGuardSettings()
