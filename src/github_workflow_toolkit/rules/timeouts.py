from __future__ import annotations

from collections.abc import Iterator

from github_workflow_toolkit.document.model import Workflow

from .findings import Finding, Severity


class TimeoutPresentRule:
    rule_id = "timeout-present"
    description = "Jobs set timeout-minutes instead of relying on the 6 hour default"
    default_severity = Severity.WARN

    def check(self, workflow: Workflow) -> Iterator[Finding]:
        for _, job in workflow.iter_jobs():
            # Reusable workflow calls cannot set a timeout; the called jobs do.
            if job.is_reusable_call or job.timeout_minutes is not None:
                continue
            yield Finding(
                self.rule_id,
                self.default_severity,
                workflow.locate(job.id),
                f"Job {job.id!r} has no timeout-minutes",
            )
