"""Mutable builder used by the composer to derive new workflows."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from dataclasses import replace

from .model import Job, Step, Workflow


class WorkflowBuilder:
    """Accumulate job-level changes, then `build()` a new frozen `Workflow`.

    Job order is preserved: replaced jobs keep their slot, added jobs are
    appended in the order they are added.
    """

    def __init__(self, base: Workflow) -> None:
        self._base = base
        self._jobs: dict[str, Job] = {job.id: job for job in base.jobs}

    @classmethod
    def from_workflow(cls, workflow: Workflow) -> WorkflowBuilder:
        return cls(workflow)

    @property
    def job_ids(self) -> tuple[str, ...]:
        return tuple(self._jobs)

    def has_job(self, job_id: str) -> bool:
        return job_id in self._jobs

    def job(self, job_id: str) -> Job:
        return self._jobs[job_id]

    def add_job(self, job: Job) -> None:
        if job.id in self._jobs:
            raise KeyError(f"job {job.id!r} already exists")
        self._jobs[job.id] = job

    def replace_job(self, job: Job) -> None:
        if job.id not in self._jobs:
            raise KeyError(job.id)
        self._jobs[job.id] = job

    def add_needs(self, job_id: str, needs: Iterable[str]) -> tuple[str, ...]:
        """Union `needs` into a job's dependencies; return the edges actually added."""

        job = self._jobs[job_id]
        current = list(job.needs)
        added = [dep for dep in dict.fromkeys(needs) if dep not in current]
        if added:
            self._jobs[job_id] = replace(job, needs=tuple(current + added))
        return tuple(added)

    def add_steps(self, job_id: str, steps: Iterable[Step], *, position: str = "end") -> None:
        job = self._jobs[job_id]
        if position == "start":
            self.insert_steps(job_id, 0, steps)
        elif position == "end":
            self.insert_steps(job_id, len(job.steps), steps)
        else:
            raise ValueError(f"position must be 'start' or 'end', got {position!r}")

    def insert_steps(self, job_id: str, index: int, steps: Iterable[Step]) -> None:
        """Insert copies of `steps`, so no two jobs share a step's mappings."""

        job = self._jobs[job_id]
        combined = job.steps[:index] + tuple(copy.deepcopy(step) for step in steps) + job.steps[index:]
        self._jobs[job_id] = replace(job, steps=combined)

    def build(self) -> Workflow:
        return replace(self._base, jobs=tuple(self._jobs.values()))
