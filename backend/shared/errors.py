"""Error types raised by the dispatch engine."""

from typing import Any


class EngineError(Exception):
    """Base error carrying a context dictionary for error reports."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message


class ConfigError(EngineError, ValueError):
    """Invalid or missing configuration (recurrence fields, templates, settings)."""


class ExecutionError(EngineError):
    """Content generation or dispatch failure during a run."""


class OperationTimeout(ExecutionError):
    """A collaborator call did not finish within its timeout."""


class RateLimitError(EngineError):
    """A run would exceed the configured execution or recipient limits."""


class NotFoundError(EngineError, KeyError):
    """Operation referenced an unknown schedule, group, rule or template."""
