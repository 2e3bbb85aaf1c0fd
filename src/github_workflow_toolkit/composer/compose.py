"""Merge patterns into a base workflow."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from github_workflow_toolkit.conventions import CHECKOUT
from github_workflow_toolkit.document.builder import WorkflowBuilder
from github_workflow_toolkit.document.errors import CompositionConflict
from github_workflow_toolkit.document.graph import dependency_edges, topological_order
from github_workflow_toolkit.document.model import ActionRefKind, ActionStep, Environment, Job, Workflow

from .patterns import ALL_JOBS, Pattern, StepContribution

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CompositionResult:
    workflow: Workflow
    applied: tuple[str, ...] = ()
    added_jobs: tuple[str, ...] = ()
    replaced_jobs: tuple[str, ...] = ()
    added_edges: tuple[tuple[str, str], ...] = ()
    protected_environments: tuple[tuple[str, Environment], ...] = ()


class _Composition:
    """Bookkeeping for one `compose` call."""

    def __init__(self, base: Workflow) -> None:
        self.builder = WorkflowBuilder.from_workflow(base)
        self.base_ids = frozenset(base.job_ids)
        self.added: list[str] = []
        self.replaced: list[str] = []
        self.edges: list[tuple[str, str]] = []

    def merge_jobs(self, pattern: Pattern) -> None:
        for job in pattern.jobs:
            if not self.builder.has_job(job.id):
                self.builder.add_job(job)
                self.added.append(job.id)
                continue
            if job.id not in pattern.overrides:
                raise CompositionConflict(
                    f"job {job.id!r} already exists; list it under `overrides` to replace it",
                    pattern=pattern.name,
                    job=job.id,
                )
            # An override keeps the replaced job's needs; its own are unioned in.
            existing = self.builder.job(job.id)
            self.builder.replace_job(replace(job, needs=existing.needs))
            for dependency in self.builder.add_needs(job.id, job.needs):
                self.edges.append((job.id, dependency))
            if job.id in self.base_ids and job.id not in self.replaced:
                self.replaced.append(job.id)

        for job in pattern.jobs:
            for dependency in job.needs:
                self._require_job(pattern, dependency, f"job {job.id!r} needs unknown job {dependency!r}")

    def merge_needs(self, pattern: Pattern) -> None:
        for job_id, dependencies in pattern.needs.items():
            self._require_job(pattern, job_id, f"needs names unknown job {job_id!r}")
            for dependency in dependencies:
                self._require_job(pattern, dependency, f"job {job_id!r} cannot need unknown job {dependency!r}")
            for dependency in self.builder.add_needs(job_id, dependencies):
                self.edges.append((job_id, dependency))

    def merge_steps(self, pattern: Pattern) -> None:
        for contribution in pattern.steps:
            for job_id in self._targets(pattern, contribution):
                job = self.builder.job(job_id)
                self.builder.insert_steps(job_id, _insertion_index(job, contribution.position), contribution.steps)

    def _targets(self, pattern: Pattern, contribution: StepContribution) -> list[str]:
        if contribution.job == ALL_JOBS:
            return [job_id for job_id in self.builder.job_ids if not self.builder.job(job_id).is_reusable_call]
        self._require_job(pattern, contribution.job, f"steps target unknown job {contribution.job!r}")
        if self.builder.job(contribution.job).is_reusable_call:
            raise CompositionConflict(
                f"job {contribution.job!r} calls a reusable workflow and cannot take steps",
                pattern=pattern.name,
                job=contribution.job,
            )
        return [contribution.job]

    def _require_job(self, pattern: Pattern, job_id: str, message: str) -> None:
        if not self.builder.has_job(job_id):
            raise CompositionConflict(message, pattern=pattern.name, job=job_id)


def _insertion_index(job: Job, position: str) -> int:
    if position == "end":
        return len(job.steps)
    if position == "after-checkout":
        for index, step in enumerate(job.steps):
            if (
                isinstance(step, ActionStep)
                and step.uses.kind is ActionRefKind.REMOTE
                and step.uses.slug.lower() == CHECKOUT.slug
            ):
                return index + 1
    return 0


def _protected_environments(workflow: Workflow) -> tuple[tuple[str, Environment], ...]:
    return tuple(
        (job.id, job.environment)
        for job in workflow.jobs
        if job.environment is not None and job.environment.protection_rules
    )


def compose(base: Workflow, patterns: Sequence[Pattern]) -> CompositionResult:
    """Apply `patterns` to `base` in order and return the composed workflow.

    Raises `CompositionConflict` when a pattern cannot be merged and
    `CyclicDependency` when the merged `needs` graph has a cycle. The base is
    never modified.
    """

    composition = _Composition(base)
    for pattern in patterns:
        before = len(composition.added), len(composition.replaced), len(composition.edges)
        composition.merge_jobs(pattern)
        composition.merge_needs(pattern)
        composition.merge_steps(pattern)
        logger.info(
            "Applied pattern",
            extra={
                "pattern": pattern.name,
                "added_jobs": len(composition.added) - before[0],
                "replaced_jobs": len(composition.replaced) - before[1],
                "added_edges": len(composition.edges) - before[2],
                "step_contributions": len(pattern.steps),
            },
        )

    workflow = composition.builder.build()
    topological_order(dependency_edges(workflow.jobs))

    return CompositionResult(
        workflow=workflow,
        applied=tuple(pattern.name for pattern in patterns),
        added_jobs=tuple(composition.added),
        replaced_jobs=tuple(composition.replaced),
        added_edges=tuple(composition.edges),
        protected_environments=_protected_environments(workflow),
    )
