"""GitHub Workflow Toolkit.

Provides:
- a strict parser and immutable model for workflow YAML
- lint rules for permissions, pinning, concurrency, injection, timeouts and caching
- pattern composition with conflict and cycle detection
- table, JSON and GitHub annotation reports
"""

__version__ = "0.1.0"

from github_workflow_toolkit.composer import compose
from github_workflow_toolkit.document import load_workflow, parse_workflow, serialize_workflow
from github_workflow_toolkit.rules import RuleEngine

__all__ = ["__version__", "RuleEngine", "compose", "load_workflow", "parse_workflow", "serialize_workflow"]
