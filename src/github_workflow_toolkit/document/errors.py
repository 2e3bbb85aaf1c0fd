"""Errors raised while parsing or composing workflow documents.

Lint findings are never raised; they are returned as data by the rule engine.
"""

from __future__ import annotations

from collections.abc import Sequence

from .location import Location


class WorkflowToolkitError(Exception):
    """Base class for all toolkit errors."""


class MalformedDocument(WorkflowToolkitError):
    """The input is not a structurally valid workflow (or composite action)."""

    def __init__(self, message: str, location: Location | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location or Location()

    def __str__(self) -> str:
        return f"{self.location.describe()}: {self.message}"


class CompositionConflict(WorkflowToolkitError):
    """A pattern cannot be merged into the workflow being composed."""

    def __init__(self, message: str, *, pattern: str, job: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.pattern = pattern
        self.job = job

    def __str__(self) -> str:
        return f"pattern {self.pattern!r}: {self.message}"


class CyclicDependency(WorkflowToolkitError):
    """The job dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(str(self))

    def __str__(self) -> str:
        if not self.cycle:
            return "Dependency cycle detected"
        path = " -> ".join([*self.cycle, self.cycle[0]])
        return f"Dependency cycle detected: {path}"
