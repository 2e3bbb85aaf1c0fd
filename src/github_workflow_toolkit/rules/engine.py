"""Run the fixed rule set over a workflow and aggregate findings."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from github_workflow_toolkit.document.model import Workflow

from .caching import CacheKeyLockfileRule
from .concurrency import ConcurrencyGuardRule
from .findings import Finding, Rule
from .injection import ShellInterpolationRule
from .permissions import ExplicitPermissionsRule, WriteAllPermissionsRule
from .pinning import PinnedActionsRule
from .timeouts import TimeoutPresentRule

logger = logging.getLogger(__name__)

DEFAULT_RULES: tuple[Rule, ...] = (
    ExplicitPermissionsRule(),
    PinnedActionsRule(),
    ConcurrencyGuardRule(),
    ShellInterpolationRule(),
    TimeoutPresentRule(),
    CacheKeyLockfileRule(),
    WriteAllPermissionsRule(),
)


class UnknownRule(KeyError):
    """Raised when a rule id does not name any registered rule."""

    def __str__(self) -> str:
        return f"Unknown rule: {self.args[0]!r}"


class RuleEngine:
    """Evaluate independent rules against a workflow.

    Findings from all rules are returned together, ordered by location (workflow
    scope first, then job and step declaration order), then rule id.
    """

    def __init__(self, rules: Sequence[Rule] | None = None, *, disabled: Iterable[str] = ()) -> None:
        available = tuple(DEFAULT_RULES if rules is None else rules)
        known = {rule.rule_id for rule in available}
        disabled_ids = set(disabled)
        for rule_id in sorted(disabled_ids):
            if rule_id not in known:
                raise UnknownRule(rule_id)
        self._rules = tuple(rule for rule in available if rule.rule_id not in disabled_ids)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def evaluate(self, workflow: Workflow) -> list[Finding]:
        findings: list[Finding] = []
        for rule in self._rules:
            produced = list(rule.check(workflow))
            if produced:
                logger.debug("Rule produced findings", extra={"rule": rule.rule_id, "count": len(produced)})
            findings.extend(produced)
        return sorted(findings, key=Finding.sort_key)
