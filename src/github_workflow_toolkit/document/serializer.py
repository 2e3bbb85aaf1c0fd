"""Serialize the document model back to canonical workflow YAML.

Output is deterministic: keys are emitted in a fixed order and multi-line
scripts use literal block style, so identical models always produce identical
bytes.
"""

from __future__ import annotations

from typing import Any

import yaml

from .model import (
    ActionStep,
    Concurrency,
    InputDeclaration,
    Job,
    Matrix,
    Permissions,
    PullRequestTrigger,
    PushTrigger,
    ReleaseTrigger,
    ScheduleTrigger,
    Step,
    Trigger,
    Workflow,
    WorkflowCallTrigger,
    WorkflowDispatchTrigger,
)


class _WorkflowDumper(yaml.SafeDumper):
    """SafeDumper with literal blocks for scripts and indented sequences."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow, False)

    def ignore_aliases(self, data: object) -> bool:
        # Equal values must print the same whether or not they share an object.
        return True


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


def _represent_tuple(dumper: yaml.SafeDumper, data: tuple) -> yaml.SequenceNode:
    return dumper.represent_list(list(data))


_WorkflowDumper.add_representer(str, _represent_str)
_WorkflowDumper.add_representer(tuple, _represent_tuple)


def _put(out: dict[str, Any], key: str, value: object) -> None:
    if value is None or (isinstance(value, (dict, list, tuple)) and not value):
        return
    out[key] = value


def _permissions(permissions: Permissions) -> object:
    if permissions.shorthand is not None:
        return permissions.shorthand
    return {scope.value: level.value for scope, level in permissions.scopes.items()}


def _concurrency(concurrency: Concurrency) -> object:
    if concurrency.cancel_in_progress is None:
        return concurrency.group
    return {"group": concurrency.group, "cancel-in-progress": concurrency.cancel_in_progress}


def _input(decl: InputDeclaration) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "description", decl.description)
    if decl.required is not None:
        out["required"] = decl.required
    out["type"] = decl.type
    if decl.default is not None:
        out["default"] = decl.default
    _put(out, "options", list(decl.options))
    return out


def _trigger(trigger: Trigger) -> object:
    out: dict[str, Any] = {}
    if isinstance(trigger, PushTrigger):
        _put(out, "branches", list(trigger.branches))
        _put(out, "branches-ignore", list(trigger.branches_ignore))
        _put(out, "tags", list(trigger.tags))
        _put(out, "tags-ignore", list(trigger.tags_ignore))
        _put(out, "paths", list(trigger.paths))
        _put(out, "paths-ignore", list(trigger.paths_ignore))
    elif isinstance(trigger, PullRequestTrigger):
        _put(out, "types", list(trigger.types))
        _put(out, "branches", list(trigger.branches))
        _put(out, "branches-ignore", list(trigger.branches_ignore))
        _put(out, "paths", list(trigger.paths))
        _put(out, "paths-ignore", list(trigger.paths_ignore))
    elif isinstance(trigger, ScheduleTrigger):
        return [{"cron": cron} for cron in trigger.crons]
    elif isinstance(trigger, ReleaseTrigger):
        _put(out, "types", list(trigger.types))
    elif isinstance(trigger, WorkflowDispatchTrigger):
        _put(out, "inputs", {decl.name: _input(decl) for decl in trigger.inputs})
    elif isinstance(trigger, WorkflowCallTrigger):
        _put(out, "inputs", {decl.name: _input(decl) for decl in trigger.inputs})
        secrets: dict[str, Any] = {}
        for secret in trigger.secrets:
            spec: dict[str, Any] = {}
            _put(spec, "description", secret.description)
            if secret.required is not None:
                spec["required"] = secret.required
            secrets[secret.name] = spec or None
        _put(out, "secrets", secrets)
        _put(out, "outputs", trigger.outputs)
    return out or None


def _matrix(matrix: Matrix) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if matrix.expression is not None:
        out["matrix"] = matrix.expression
    elif matrix.axes or matrix.include or matrix.exclude:
        body: dict[str, Any] = {name: values for name, values in matrix.axes}
        _put(body, "include", [dict(entry) for entry in matrix.include])
        _put(body, "exclude", [dict(entry) for entry in matrix.exclude])
        out["matrix"] = body
    if matrix.fail_fast is not None:
        out["fail-fast"] = matrix.fail_fast
    _put(out, "max-parallel", matrix.max_parallel)
    return out


def step_to_dict(step: Step) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "id", step.id)
    _put(out, "name", step.name)
    _put(out, "if", step.condition)
    if isinstance(step, ActionStep):
        out["uses"] = step.uses.raw
        _put(out, "with", step.inputs)
    else:
        _put(out, "shell", step.shell)
        _put(out, "working-directory", step.working_directory)
        out["run"] = step.run
    _put(out, "env", step.env)
    if step.continue_on_error is not None:
        out["continue-on-error"] = step.continue_on_error
    _put(out, "timeout-minutes", step.timeout_minutes)
    return out


def job_to_dict(job: Job) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "name", job.name)
    if job.runs_on:
        out["runs-on"] = job.runs_on[0] if len(job.runs_on) == 1 else list(job.runs_on)
    if job.needs:
        out["needs"] = job.needs[0] if len(job.needs) == 1 else list(job.needs)
    _put(out, "if", job.condition)
    if job.permissions is not None:
        out["permissions"] = _permissions(job.permissions)
    if job.environment is not None:
        env = job.environment
        out["environment"] = env.name if env.url is None else {"name": env.name, "url": env.url}
    if job.concurrency is not None:
        out["concurrency"] = _concurrency(job.concurrency)
    _put(out, "timeout-minutes", job.timeout_minutes)
    if job.matrix is not None:
        _put(out, "strategy", _matrix(job.matrix))
    for key in ("continue-on-error", "container", "services", "defaults"):
        if key in job.extra:
            out[key] = job.extra[key]
    _put(out, "outputs", job.outputs)
    _put(out, "env", job.env)
    if job.uses is not None:
        out["uses"] = job.uses.raw
        _put(out, "with", job.with_inputs)
        _put(out, "secrets", job.secrets)
    else:
        out["steps"] = [step_to_dict(step) for step in job.steps]
    return out


def workflow_to_dict(workflow: Workflow) -> dict[str, Any]:
    out: dict[str, Any] = {}
    _put(out, "name", workflow.name)
    _put(out, "run-name", workflow.run_name)
    out["on"] = {trigger.kind.value: _trigger(trigger) for trigger in workflow.triggers}
    if workflow.permissions is not None:
        out["permissions"] = _permissions(workflow.permissions)
    _put(out, "env", workflow.env)
    _put(out, "defaults", workflow.defaults)
    if workflow.concurrency is not None:
        out["concurrency"] = _concurrency(workflow.concurrency)
    out["jobs"] = {job.id: job_to_dict(job) for job in workflow.jobs}
    return out


def dump_yaml(data: object) -> str:
    return yaml.dump(
        data,
        Dumper=_WorkflowDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )


def serialize_workflow(workflow: Workflow) -> str:
    """Render a workflow as canonical YAML text."""

    return dump_yaml(workflow_to_dict(workflow))
