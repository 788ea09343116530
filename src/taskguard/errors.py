"""
Structured error types for taskguard.

Every error raised or returned by taskguard extends ``TaskGuardError`` so
callers get a category, retry semantics, structured context and a chained
cause instead of a bare exception.

Manifesto:
    - **Typed Error Hierarchy:** Registry, scheduling and configuration
      failures are distinct types
    - **Explicit Retry Semantics:** Every error knows if it's retryable
    - **Rich Context:** Errors carry the task identifier, cron expression
      and timezone for logging
    - **Error Chaining:** The trigger backend's original exception is kept
      as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     TaskGuardError                          │
        │  (category, retryable, context, cause)                      │
        ├─────────────────────────────────────────────────────────────┤
        │                                                             │
        │  TaskGuardValidationError   ConfigError      TaskError      │
        │  (VALIDATION)               (CONFIG)         (ORCHESTRATION)│
        │        │                        │                │          │
        │  InvalidIdentifierError   InvalidConfigError  DuplicateIdentifierError
        │                                               TaskNotFoundError
        │                                                             │
        │  ScheduleError (ORCHESTRATION)                              │
        └─────────────────────────────────────────────────────────────┘

    A busy rejection is *not* an error: ``Task.initiate`` logs a warning
    and reports ``RunStatus.SKIPPED``.

Examples:
    >>> error = DuplicateIdentifierError("sync")
    >>> error.category
    <ErrorCategory.ORCHESTRATION: 'ORCHESTRATION'>
    >>> error.context.task
    'sync'

    >>> err = ScheduleError("Failed to start job.", cause=ValueError("bad cron"))
    >>> err.with_context(expression="* * *").to_dict()["context"]
    {'expression': '* * *'}

Tags:
    error-handling, exception-hierarchy, error-context, taskguard

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        VALIDATION: Bad arguments supplied by the caller
        CONFIG: Missing or invalid settings
        ORCHESTRATION: Task registry and scheduling errors
        INTERNAL: Bugs, unexpected state
        UNKNOWN: Uncategorized errors
    """

    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    ORCHESTRATION = "ORCHESTRATION"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Only the fields that are set end up in ``to_dict()``; anything else can
    go into ``metadata``.

    Attributes:
        task: Identifier of the task involved
        expression: Cron expression being scheduled
        timezone: Timezone the expression was evaluated in
        backend: Trigger backend name
        metadata: Additional key-value pairs
    """

    task: str | None = None
    expression: str | None = None
    timezone: str | None = None
    backend: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["task", "expression", "timezone", "backend"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TaskGuardError(Exception):
    """
    Base exception for all taskguard errors.

    Subclasses set ``default_category`` and ``default_retryable`` so the
    common case needs nothing but a message.

    Examples:
        >>> error = TaskGuardError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> try:
        ...     raise ValueError("bad field")
        ... except ValueError as e:
        ...     error = TaskGuardError("Wrapped", cause=e)
        >>> error.__cause__
        ValueError('bad field')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TaskGuardError:
        """
        Add context to this error (fluent API).

        Usage:
            return Err(ScheduleError("Failed").with_context(
                task="sync", expression="*/5 * * * *"
            ))
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class TaskGuardValidationError(TaskGuardError):
    """Invalid argument supplied by the caller. Never retryable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class InvalidIdentifierError(TaskGuardValidationError):
    """Task identifier is empty or not a string."""

    def __init__(self, identifier: Any, **kwargs: Any):
        super().__init__(
            f"Task identifiers must be non-empty strings, got {identifier!r}.",
            **kwargs,
        )
        self.identifier = identifier


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(TaskGuardError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid (unknown backend, unknown timezone)."""

    pass


# =============================================================================
# TASK / SCHEDULING ERRORS
# =============================================================================


class TaskError(TaskGuardError):
    """Task registry error."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class DuplicateIdentifierError(TaskError):
    """A task with this identifier is already registered.

    This is a programmer error raised at setup time; the existing task is
    left untouched.
    """

    def __init__(self, identifier: str, **kwargs: Any):
        super().__init__(
            f'A task with the identifier "{identifier}" already exists.',
            **kwargs,
        )
        self.identifier = identifier
        self.context.task = identifier


class TaskNotFoundError(TaskError, KeyError):
    """No task is registered under this identifier."""

    def __init__(self, identifier: str, **kwargs: Any):
        super().__init__(f'No task with the identifier "{identifier}" exists.', **kwargs)
        self.identifier = identifier
        self.context.task = identifier

    def __str__(self) -> str:
        return self.message


class ScheduleError(TaskGuardError):
    """The trigger backend could not register a recurring job."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TaskGuardError",
    "TaskGuardValidationError",
    "InvalidIdentifierError",
    "ConfigError",
    "InvalidConfigError",
    "TaskError",
    "DuplicateIdentifierError",
    "TaskNotFoundError",
    "ScheduleError",
]
