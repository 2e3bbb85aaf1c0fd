"""Permission rules: every workflow states its token scopes explicitly."""

from __future__ import annotations

from collections.abc import Iterator

from github_workflow_toolkit.document.model import Workflow

from .findings import Finding, Severity


class ExplicitPermissionsRule:
    rule_id = "explicit-permissions"
    description = "Workflows declare least-privilege GITHUB_TOKEN permissions"
    default_severity = Severity.FAIL

    def check(self, workflow: Workflow) -> Iterator[Finding]:
        if workflow.permissions is not None:
            return
        uncovered = [job.id for job in workflow.jobs if job.permissions is None]
        if not uncovered:
            return

        # The message names only uncovered jobs, so adding jobs that declare their
        # own permissions leaves it unchanged.
        message = (
            "No top-level permissions block; these jobs get the repository default token "
            f"scopes: {', '.join(uncovered)}. Declare e.g. `permissions: {{contents: read}}`"
        )
        yield Finding(self.rule_id, self.default_severity, workflow.locate(), message)


class WriteAllPermissionsRule:
    rule_id = "write-all-permissions"
    description = "`permissions: write-all` grants every scope; list the scopes needed instead"
    default_severity = Severity.WARN

    def check(self, workflow: Workflow) -> Iterator[Finding]:
        if workflow.permissions is not None and workflow.permissions.is_write_all:
            yield Finding(
                self.rule_id,
                self.default_severity,
                workflow.locate(field="permissions"),
                "Workflow grants write-all permissions",
            )
        for _, job in workflow.iter_jobs():
            if job.permissions is not None and job.permissions.is_write_all:
                yield Finding(
                    self.rule_id,
                    self.default_severity,
                    workflow.locate(job.id, field="permissions"),
                    f"Job {job.id!r} grants write-all permissions",
                )
