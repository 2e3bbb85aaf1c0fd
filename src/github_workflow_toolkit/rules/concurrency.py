from __future__ import annotations

from collections.abc import Iterator

from github_workflow_toolkit.document.model import TriggerKind, Workflow

from .findings import Finding, Severity

GUARDED_TRIGGERS = frozenset({TriggerKind.PUSH, TriggerKind.PULL_REQUEST})


class ConcurrencyGuardRule:
    rule_id = "concurrency-guard"
    description = "Push and pull_request workflows cancel or queue superseded runs via a concurrency group"
    default_severity = Severity.WARN

    def check(self, workflow: Workflow) -> Iterator[Finding]:
        triggered_by = sorted(kind.value for kind in workflow.trigger_kinds & GUARDED_TRIGGERS)
        if not triggered_by or workflow.concurrency is not None:
            return
        if workflow.jobs and all(job.concurrency is not None for job in workflow.jobs):
            return
        yield Finding(
            self.rule_id,
            self.default_severity,
            workflow.locate(),
            f"Workflow runs on {', '.join(triggered_by)} without a concurrency group; e.g. "
            "`concurrency: {group: ${{ github.workflow }}-${{ github.ref }}, cancel-in-progress: true}`",
        )
