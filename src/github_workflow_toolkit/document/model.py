"""In-memory representation of a workflow definition.

All entities are frozen: a `Workflow` is immutable once parsed. The composer
changes documents only through `WorkflowBuilder`, which produces a new
`Workflow`.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from .location import Location


class PermissionScope(str, Enum):
    CONTENTS = "contents"
    PACKAGES = "packages"
    PULL_REQUESTS = "pull-requests"
    ISSUES = "issues"
    ID_TOKEN = "id-token"
    PAGES = "pages"
    DEPLOYMENTS = "deployments"
    STATUSES = "statuses"


class AccessLevel(str, Enum):
    READ = "read"
    WRITE = "write"
    NONE = "none"


class TriggerKind(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    SCHEDULE = "schedule"
    WORKFLOW_DISPATCH = "workflow_dispatch"
    RELEASE = "release"
    WORKFLOW_CALL = "workflow_call"


class ActionRefKind(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"
    DOCKER = "docker"


PERMISSION_SHORTHANDS: frozenset[str] = frozenset({"read-all", "write-all"})

_REMOTE_REF_RE = re.compile(
    r"^(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+)(?:/(?P<path>[^@]+))?(?:@(?P<ref>.+))?$"
)


@dataclass(frozen=True, slots=True)
class ActionRef:
    """A `uses:` reference to an action or reusable workflow."""

    raw: str
    kind: ActionRefKind
    owner: str | None = None
    repo: str | None = None
    path: str | None = None
    ref: str | None = None

    @property
    def slug(self) -> str:
        """`owner/repo[/path]` without the ref (the image name for docker refs)."""

        if self.kind is ActionRefKind.REMOTE:
            base = f"{self.owner}/{self.repo}"
            return f"{base}/{self.path}" if self.path else base
        if self.kind is ActionRefKind.DOCKER:
            return self.path or ""
        return self.raw

    @staticmethod
    def parse(raw: str) -> ActionRef:
        text = raw.strip()
        if not text:
            raise ValueError("empty action reference")

        if text.startswith("./") or text.startswith("../"):
            return ActionRef(raw=text, kind=ActionRefKind.LOCAL, path=text)

        if text.startswith("docker://"):
            image = text[len("docker://") :]
            if not image:
                raise ValueError(f"docker reference has no image: {raw!r}")
            if "@" in image:
                name, digest = image.split("@", 1)
                return ActionRef(raw=text, kind=ActionRefKind.DOCKER, path=name, ref=digest)
            # A colon after the last slash is a tag; earlier colons belong to a registry port.
            last_segment = image.rsplit("/", 1)[-1]
            if ":" in last_segment:
                name, tag = image.rsplit(":", 1)
                return ActionRef(raw=text, kind=ActionRefKind.DOCKER, path=name, ref=tag)
            return ActionRef(raw=text, kind=ActionRefKind.DOCKER, path=image)

        match = _REMOTE_REF_RE.match(text)
        if match is None:
            raise ValueError(f"not an action reference: {raw!r}")
        ref = match.group("ref")
        if ref is not None and not ref.strip():
            raise ValueError(f"action reference has an empty ref: {raw!r}")
        return ActionRef(
            raw=text,
            kind=ActionRefKind.REMOTE,
            owner=match.group("owner"),
            repo=match.group("repo"),
            path=match.group("path"),
            ref=ref,
        )


@dataclass(frozen=True, slots=True)
class Permissions:
    """A `permissions:` block.

    `shorthand` is set for `read-all` / `write-all`; otherwise `scopes` holds the
    explicit grants. Scopes not listed in an explicit block are `none`.
    """

    scopes: dict[PermissionScope, AccessLevel] = field(default_factory=dict)
    shorthand: str | None = None

    def access(self, scope: PermissionScope) -> AccessLevel:
        if self.shorthand == "write-all":
            return AccessLevel.WRITE
        if self.shorthand == "read-all":
            return AccessLevel.READ
        return self.scopes.get(scope, AccessLevel.NONE)

    @property
    def is_write_all(self) -> bool:
        return self.shorthand == "write-all"


@dataclass(frozen=True, slots=True)
class Concurrency:
    group: str
    cancel_in_progress: bool | str | None = None


@dataclass(frozen=True, slots=True)
class Matrix:
    """A job's `strategy` block.

    `expression` is set when the whole matrix is computed (``${{ fromJSON(...) }}``);
    otherwise `axes` holds the named axes in declaration order.
    """

    axes: tuple[tuple[str, tuple[object, ...] | str], ...] = ()
    include: tuple[dict[str, object], ...] = ()
    exclude: tuple[dict[str, object], ...] = ()
    expression: str | None = None
    fail_fast: bool | str | None = None
    max_parallel: int | str | None = None

    def axis(self, name: str) -> tuple[object, ...] | str:
        for axis_name, values in self.axes:
            if axis_name == name:
                return values
        raise KeyError(name)


@dataclass(frozen=True, slots=True)
class Environment:
    """A deployment environment.

    `protection_rules` are descriptive only (reviewers, wait timers, branch
    policies live in repository settings), so they are never serialized.
    """

    name: str
    url: str | None = None
    protection_rules: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class _StepBase:
    id: str | None = None
    name: str | None = None
    condition: str | None = None
    env: dict[str, object] = field(default_factory=dict)
    continue_on_error: bool | str | None = None
    timeout_minutes: int | float | str | None = None
    line: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ActionStep(_StepBase):
    uses: ActionRef
    inputs: dict[str, object] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.name or self.uses.raw


@dataclass(frozen=True, slots=True, kw_only=True)
class RunStep(_StepBase):
    run: str
    shell: str | None = None
    working_directory: str | None = None

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        first = self.run.strip().splitlines()
        return first[0] if first else "run"


Step = ActionStep | RunStep


@dataclass(frozen=True, slots=True)
class InputDeclaration:
    name: str
    type: str = "string"
    description: str | None = None
    required: bool | None = None
    default: object = None
    options: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SecretDeclaration:
    name: str
    description: str | None = None
    required: bool | None = None


@dataclass(frozen=True, slots=True)
class PushTrigger:
    kind: ClassVar[TriggerKind] = TriggerKind.PUSH

    branches: tuple[str, ...] = ()
    branches_ignore: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    tags_ignore: tuple[str, ...] = ()
    paths: tuple[str, ...] = ()
    paths_ignore: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PullRequestTrigger:
    kind: ClassVar[TriggerKind] = TriggerKind.PULL_REQUEST

    types: tuple[str, ...] = ()
    branches: tuple[str, ...] = ()
    branches_ignore: tuple[str, ...] = ()
    paths: tuple[str, ...] = ()
    paths_ignore: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ScheduleTrigger:
    kind: ClassVar[TriggerKind] = TriggerKind.SCHEDULE

    crons: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class WorkflowDispatchTrigger:
    kind: ClassVar[TriggerKind] = TriggerKind.WORKFLOW_DISPATCH

    inputs: tuple[InputDeclaration, ...] = ()


@dataclass(frozen=True, slots=True)
class ReleaseTrigger:
    kind: ClassVar[TriggerKind] = TriggerKind.RELEASE

    types: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class WorkflowCallTrigger:
    kind: ClassVar[TriggerKind] = TriggerKind.WORKFLOW_CALL

    inputs: tuple[InputDeclaration, ...] = ()
    secrets: tuple[SecretDeclaration, ...] = ()
    outputs: dict[str, object] = field(default_factory=dict)


Trigger = (
    PushTrigger
    | PullRequestTrigger
    | ScheduleTrigger
    | WorkflowDispatchTrigger
    | ReleaseTrigger
    | WorkflowCallTrigger
)


@dataclass(frozen=True, slots=True)
class Job:
    """A unit of execution.

    A job either runs `steps` on `runs_on`, or calls a reusable workflow via
    `uses` (with `with_inputs` / `secrets`).
    """

    id: str
    name: str | None = None
    runs_on: tuple[str, ...] = ()
    steps: tuple[Step, ...] = ()
    needs: tuple[str, ...] = ()
    matrix: Matrix | None = None
    environment: Environment | None = None
    permissions: Permissions | None = None
    concurrency: Concurrency | None = None
    timeout_minutes: int | float | str | None = None
    condition: str | None = None
    outputs: dict[str, object] = field(default_factory=dict)
    env: dict[str, object] = field(default_factory=dict)
    uses: ActionRef | None = None
    with_inputs: dict[str, object] = field(default_factory=dict)
    secrets: dict[str, object] | str | None = None
    extra: dict[str, object] = field(default_factory=dict)
    line: int | None = None

    @property
    def is_reusable_call(self) -> bool:
        return self.uses is not None


@dataclass(frozen=True, slots=True)
class Workflow:
    triggers: tuple[Trigger, ...]
    jobs: tuple[Job, ...]
    name: str | None = None
    run_name: str | None = None
    permissions: Permissions | None = None
    env: dict[str, object] = field(default_factory=dict)
    defaults: dict[str, object] = field(default_factory=dict)
    concurrency: Concurrency | None = None
    line: int | None = None

    @property
    def job_ids(self) -> tuple[str, ...]:
        return tuple(job.id for job in self.jobs)

    @property
    def trigger_kinds(self) -> frozenset[TriggerKind]:
        return frozenset(trigger.kind for trigger in self.triggers)

    def job(self, job_id: str) -> Job:
        for job in self.jobs:
            if job.id == job_id:
                return job
        raise KeyError(job_id)

    def job_index(self, job_id: str) -> int:
        for index, job in enumerate(self.jobs):
            if job.id == job_id:
                return index
        raise KeyError(job_id)

    def iter_jobs(self) -> Iterator[tuple[int, Job]]:
        """Jobs in declaration order, with their index."""

        yield from enumerate(self.jobs)

    def iter_steps(self) -> Iterator[tuple[int, Job, int, Step]]:
        """Every step in declaration order: (job index, job, step index, step)."""

        for job_index, job in enumerate(self.jobs):
            for step_index, step in enumerate(job.steps):
                yield job_index, job, step_index, step

    def locate(
        self,
        job_id: str | None = None,
        step_index: int | None = None,
        field: str | None = None,
    ) -> Location:
        """Build a `Location` for a job or step, carrying its source line."""

        if job_id is None:
            return Location(field=field, line=self.line)
        job_index = self.job_index(job_id)
        job = self.jobs[job_index]
        line = job.line
        if step_index is not None:
            line = job.steps[step_index].line or line
        return Location(
            job=job_id, job_index=job_index, step_index=step_index, field=field, line=line
        )


@dataclass(frozen=True, slots=True)
class CompositeAction:
    """`action.yml` metadata for a composite action (`runs.using: composite`)."""

    steps: tuple[Step, ...]
    name: str | None = None
    description: str | None = None
    inputs: dict[str, object] = field(default_factory=dict)
    outputs: dict[str, object] = field(default_factory=dict)
    line: int | None = None
