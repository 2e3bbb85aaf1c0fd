"""Script injection: untrusted event data must reach shells through env vars."""

from __future__ import annotations

from collections.abc import Iterator

from github_workflow_toolkit.conventions import (
    EXPRESSION_RE,
    SECRET_CONTEXT_RE,
    UNTRUSTED_CONTEXT_PATTERNS,
)
from github_workflow_toolkit.document.model import RunStep, Workflow

from .findings import Finding, Severity


def is_untrusted_expression(expression: str) -> bool:
    return any(pattern.search(expression) for pattern in UNTRUSTED_CONTEXT_PATTERNS)


class ShellInterpolationRule:
    rule_id = "secret-in-shell-interpolation"
    description = "Run steps pass user-controlled event fields and secrets through env, not ${{ }}"
    default_severity = Severity.FAIL

    def check(self, workflow: Workflow) -> Iterator[Finding]:
        for _, job, step_index, step in workflow.iter_steps():
            if not isinstance(step, RunStep):
                continue
            seen: set[str] = set()
            for match in EXPRESSION_RE.finditer(step.run):
                expression = match.group(1)
                if expression in seen:
                    continue
                seen.add(expression)
                location = workflow.locate(job.id, step_index, field="run")
                if is_untrusted_expression(expression):
                    yield Finding(
                        self.rule_id,
                        Severity.FAIL,
                        location,
                        f"Run step interpolates user-controlled `${{{{ {expression} }}}}` into the "
                        "script; pass it via env and reference the variable instead",
                    )
                elif SECRET_CONTEXT_RE.search(expression):
                    yield Finding(
                        self.rule_id,
                        Severity.WARN,
                        location,
                        f"Run step interpolates `${{{{ {expression} }}}}` into the script; "
                        "expose secrets through env instead",
                    )
