"""Action pinning: third-party code runs at an immutable revision."""

from __future__ import annotations

from collections.abc import Iterator

from github_workflow_toolkit.conventions import (
    ABBREVIATED_SHA_RE,
    DOCKER_DIGEST_RE,
    FULL_SHA_RE,
    MAJOR_TAG_RE,
    MINOR_TAG_RE,
    MUTABLE_REFS,
    SEMVER_TAG_RE,
    pinned_action_by_slug,
)
from github_workflow_toolkit.document.model import ActionRef, ActionRefKind, ActionStep, Workflow

from .findings import Finding, Severity


def _known_pin(action: ActionRef) -> str:
    pinned = pinned_action_by_slug(action.slug)
    if pinned is None:
        return ""
    return f" (e.g. `{pinned.uses}` # {pinned.version})"


def classify_ref(action: ActionRef) -> tuple[Severity, str] | None:
    """Judge how firmly an action reference is pinned.

    Returns None when the reference is acceptable, otherwise the severity and
    a message.
    """

    if action.kind is ActionRefKind.LOCAL:
        return None

    if action.kind is ActionRefKind.DOCKER:
        if action.ref is None or action.ref == "latest":
            return Severity.FAIL, f"{action.raw} uses a mutable image tag; pin to a sha256 digest"
        if DOCKER_DIGEST_RE.match(action.ref):
            return None
        return Severity.WARN, f"{action.raw} is pinned to tag {action.ref!r}; prefer a sha256 digest"

    ref = action.ref
    if ref is None:
        return Severity.FAIL, f"{action.raw} is not pinned to any ref"
    if FULL_SHA_RE.match(ref):
        return None
    if ref.lower() in MUTABLE_REFS:
        return (
            Severity.FAIL,
            f"{action.raw} is pinned to mutable ref {ref!r}; pin to a full commit SHA" + _known_pin(action),
        )
    if SEMVER_TAG_RE.match(ref):
        return None
    if MAJOR_TAG_RE.match(ref) or MINOR_TAG_RE.match(ref):
        return (
            Severity.WARN,
            f"{action.raw} is pinned to floating tag {ref!r}; pin to a full commit SHA" + _known_pin(action),
        )
    if ABBREVIATED_SHA_RE.match(ref):
        return Severity.FAIL, f"{action.raw} uses an abbreviated SHA; use the full 40-character SHA"
    return Severity.FAIL, f"{action.raw} is pinned to {ref!r}, which looks like a branch name"


class PinnedActionsRule:
    rule_id = "pinned-actions"
    description = "Actions and reusable workflows are pinned to a full commit SHA or release tag"
    default_severity = Severity.FAIL

    def check(self, workflow: Workflow) -> Iterator[Finding]:
        for _, job in workflow.iter_jobs():
            if job.uses is not None:
                verdict = classify_ref(job.uses)
                if verdict is not None:
                    severity, message = verdict
                    yield Finding(self.rule_id, severity, workflow.locate(job.id, field="uses"), message)

        for _, job, step_index, step in workflow.iter_steps():
            if not isinstance(step, ActionStep):
                continue
            verdict = classify_ref(step.uses)
            if verdict is None:
                continue
            severity, message = verdict
            yield Finding(
                self.rule_id,
                severity,
                workflow.locate(job.id, step_index, field="uses"),
                message,
            )
