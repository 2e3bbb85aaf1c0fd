from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from github_workflow_toolkit.document.location import Location
from github_workflow_toolkit.document.model import Workflow


class Severity(str, Enum):
    WARN = "warn"
    FAIL = "fail"

    @property
    def rank(self) -> int:
        return 2 if self is Severity.FAIL else 1


@dataclass(frozen=True, slots=True)
class Finding:
    """A single rule violation. Findings are data: they are never raised."""

    rule_id: str
    severity: Severity
    location: Location
    message: str

    def sort_key(self) -> tuple[tuple[int, int, int, int], str, str]:
        return (self.location.sort_key(), self.rule_id, self.message)


class Rule(Protocol):
    """An independent, pure check over a parsed workflow.

    Rules must not mutate the workflow and must not depend on other rules.
    """

    rule_id: str
    description: str
    default_severity: Severity

    def check(self, workflow: Workflow) -> Iterable[Finding]: ...
