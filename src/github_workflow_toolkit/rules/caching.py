from __future__ import annotations

from collections.abc import Iterator

from github_workflow_toolkit.conventions import CACHE_ACTIONS, HASH_FILES_RE, LOCKFILE_PATTERNS
from github_workflow_toolkit.document.model import ActionRefKind, ActionStep, Workflow

from .findings import Finding, Severity


def hashes_lockfile(key: str) -> bool:
    for arguments in HASH_FILES_RE.findall(key):
        lowered = arguments.lower()
        if any(pattern.lower() in lowered for pattern in LOCKFILE_PATTERNS):
            return True
    return False


class CacheKeyLockfileRule:
    rule_id = "cache-key-uses-lockfile"
    description = "Dependency cache keys derive from a lockfile hash"
    default_severity = Severity.WARN

    def check(self, workflow: Workflow) -> Iterator[Finding]:
        for _, job, step_index, step in workflow.iter_steps():
            if not isinstance(step, ActionStep) or step.uses.kind is not ActionRefKind.REMOTE:
                continue
            if step.uses.slug.lower() not in CACHE_ACTIONS:
                continue

            location = workflow.locate(job.id, step_index, field="with.key")
            key = step.inputs.get("key")
            if not isinstance(key, str) or not key.strip():
                message = f"Cache step {step.label!r} has no key"
            elif not HASH_FILES_RE.search(key):
                message = f"Cache key {key!r} does not hash any file; derive it from a lockfile"
            elif not hashes_lockfile(key):
                message = f"Cache key {key!r} hashes files but no lockfile"
            else:
                continue
            yield Finding(self.rule_id, self.default_severity, location, message)
