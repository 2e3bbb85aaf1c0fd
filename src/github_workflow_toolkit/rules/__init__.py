"""Lint rules for workflow documents."""

from github_workflow_toolkit.rules.engine import DEFAULT_RULES, RuleEngine, UnknownRule
from github_workflow_toolkit.rules.findings import Finding, Rule, Severity

__all__ = ["DEFAULT_RULES", "Finding", "Rule", "RuleEngine", "Severity", "UnknownRule"]
