"""Compose base workflows with reusable patterns."""

from github_workflow_toolkit.composer.compose import CompositionResult, compose
from github_workflow_toolkit.composer.library import builtin_patterns
from github_workflow_toolkit.composer.patterns import (
    Pattern,
    PatternRegistry,
    StepContribution,
    UnknownPattern,
    load_pattern,
    parse_pattern,
)

__all__ = [
    "CompositionResult",
    "Pattern",
    "PatternRegistry",
    "StepContribution",
    "UnknownPattern",
    "builtin_patterns",
    "compose",
    "load_pattern",
    "parse_pattern",
]
