from __future__ import annotations

from typing import Any, List, Sequence


class TaskforceError(Exception):
    """Base class for every error raised by the package."""


class ConfigurationError(TaskforceError):
    """Invalid combination of agency, agent, or backend settings."""


class BackendError(TaskforceError):
    """Transport or authentication failure talking to a model backend."""

    def __init__(self, message: str, history: Sequence[Any] | None = None) -> None:
        super().__init__(message)
        self.history: List[Any] = list(history or [])


class UnresolvedToolCallsError(TaskforceError):
    """Some tool calls requested in a turn have no matching result."""

    def __init__(self, missing: Sequence[Any]) -> None:
        self.missing = list(missing)
        described = ", ".join(f"Name: '{call.name}', ID:{call.id}" for call in self.missing)
        super().__init__(f"Failed to resolve all tool calls. Missing: {described}")


class ToolLoopLimitError(TaskforceError):
    """The conversation kept requesting tools past the iteration bound."""


class UnsupportedOperationError(TaskforceError):
    """The backend lacks the capability the caller asked for."""


class NoAgentError(TaskforceError):
    """A task was executed with neither a bound nor a supplied agent."""


class ManagerNotConfiguredError(TaskforceError):
    """Chat-style invocation needs a hierarchical manager agent."""


class ToolError(TaskforceError):
    """Raised by tool executors; the registry turns it into error text."""
