"""Parse workflow YAML into the document model.

Parsing is strict about structure (unknown keys, duplicate keys, wrong shapes
all raise `MalformedDocument` with a location) but does not judge style: that
is the rule engine's job.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from yaml.nodes import MappingNode, ScalarNode

from .errors import CyclicDependency, MalformedDocument
from .graph import dependency_edges, topological_order, unknown_needs
from .location import Location
from .model import (
    PERMISSION_SHORTHANDS,
    AccessLevel,
    ActionRef,
    ActionStep,
    CompositeAction,
    Concurrency,
    Environment,
    InputDeclaration,
    Job,
    Matrix,
    PermissionScope,
    Permissions,
    PullRequestTrigger,
    PushTrigger,
    ReleaseTrigger,
    RunStep,
    ScheduleTrigger,
    SecretDeclaration,
    Step,
    Trigger,
    TriggerKind,
    Workflow,
    WorkflowCallTrigger,
    WorkflowDispatchTrigger,
)

logger = logging.getLogger(__name__)

WORKFLOW_KEYS = frozenset(
    {"name", "run-name", "on", "permissions", "env", "defaults", "concurrency", "jobs"}
)
JOB_KEYS = frozenset(
    {
        "name",
        "runs-on",
        "needs",
        "steps",
        "permissions",
        "environment",
        "concurrency",
        "outputs",
        "env",
        "defaults",
        "if",
        "timeout-minutes",
        "strategy",
        "continue-on-error",
        "container",
        "services",
        "uses",
        "with",
        "secrets",
    }
)
JOB_PASSTHROUGH_KEYS = ("container", "services", "defaults", "continue-on-error")
STEP_KEYS = frozenset(
    {
        "id",
        "name",
        "if",
        "uses",
        "with",
        "run",
        "shell",
        "working-directory",
        "env",
        "continue-on-error",
        "timeout-minutes",
    }
)
ACTION_KEYS = frozenset({"name", "author", "description", "inputs", "outputs", "runs", "branding"})

TRIGGER_FIELDS: dict[TriggerKind, frozenset[str]] = {
    TriggerKind.PUSH: frozenset(
        {"branches", "branches-ignore", "tags", "tags-ignore", "paths", "paths-ignore"}
    ),
    TriggerKind.PULL_REQUEST: frozenset(
        {"types", "branches", "branches-ignore", "paths", "paths-ignore"}
    ),
    TriggerKind.SCHEDULE: frozenset({"cron"}),
    TriggerKind.WORKFLOW_DISPATCH: frozenset({"inputs"}),
    TriggerKind.RELEASE: frozenset({"types"}),
    TriggerKind.WORKFLOW_CALL: frozenset({"inputs", "secrets", "outputs"}),
}

INPUT_KEYS = frozenset({"description", "required", "default", "type", "options", "deprecationMessage"})
DISPATCH_INPUT_TYPES = frozenset({"string", "boolean", "number", "choice", "environment"})
CALL_INPUT_TYPES = frozenset({"string", "boolean", "number"})

_JOB_ID_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
_CRON_FIELD_RE = re.compile(r"^[A-Za-z0-9*/,?#LW-]+$")
_BOOL_TAG = "tag:yaml.org,2002:bool"


class _LocatedMapping(dict):
    """A dict that remembers where it (and each of its keys) started."""

    line: int | None = None
    key_lines: dict[Any, int]


class _DuplicateKey(yaml.YAMLError):
    def __init__(self, key: object, line: int, column: int) -> None:
        super().__init__(f"duplicate key {key!r}")
        self.key = key
        self.line = line
        self.column = column


class _DocumentLoader(yaml.SafeLoader):
    """SafeLoader that records line numbers and rejects duplicate keys."""


def _construct_key(loader: _DocumentLoader, node: yaml.Node) -> object:
    # YAML 1.1 reads `on:` as the boolean True; mapping keys keep their spelling.
    if isinstance(node, ScalarNode) and node.tag == _BOOL_TAG:
        return node.value
    return loader.construct_object(node, deep=True)


def _construct_mapping(loader: _DocumentLoader, node: MappingNode) -> _LocatedMapping:
    loader.flatten_mapping(node)
    mapping = _LocatedMapping()
    mapping.line = node.start_mark.line + 1
    mapping.key_lines = {}
    for key_node, value_node in node.value:
        key = _construct_key(loader, key_node)
        try:
            duplicate = key in mapping
        except TypeError:
            raise _DuplicateKey(key, key_node.start_mark.line + 1, key_node.start_mark.column + 1)
        if duplicate:
            raise _DuplicateKey(key, key_node.start_mark.line + 1, key_node.start_mark.column + 1)
        mapping[key] = loader.construct_object(value_node, deep=True)
        mapping.key_lines[key] = key_node.start_mark.line + 1
    return mapping


_DocumentLoader.add_constructor("tag:yaml.org,2002:map", _construct_mapping)


def load_yaml(text: str, *, source: str | None = None) -> object:
    """Load a single YAML document, mapping YAML errors to `MalformedDocument`."""

    try:
        return yaml.load(text, Loader=_DocumentLoader)  # noqa: S506 (SafeLoader subclass)
    except _DuplicateKey as e:
        raise MalformedDocument(
            f"Duplicate key {e.key!r}",
            Location(line=e.line, column=e.column, source=source),
        ) from e
    except yaml.MarkedYAMLError as e:
        mark = e.problem_mark or e.context_mark
        problem = e.problem or e.context or "invalid YAML"
        raise MalformedDocument(
            f"Invalid YAML: {problem}",
            Location(
                line=mark.line + 1 if mark else None,
                column=mark.column + 1 if mark else None,
                source=source,
            ),
        ) from e
    except yaml.YAMLError as e:
        raise MalformedDocument(f"Invalid YAML: {e}", Location(source=source)) from e


def plain(value: object) -> Any:
    """Strip parser bookkeeping so values compare and serialize as plain data."""

    if isinstance(value, dict):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain(v) for v in value]
    return value


def _line_of(mapping: object, key: str | None = None) -> int | None:
    if not isinstance(mapping, _LocatedMapping):
        return None
    if key is not None and key in mapping.key_lines:
        return mapping.key_lines[key]
    return mapping.line


class _Scope:
    """Location factory for one position in the document."""

    def __init__(
        self,
        source: str | None,
        job: str | None = None,
        job_index: int = -1,
        step_index: int | None = None,
        prefix: str | None = None,
    ) -> None:
        self.source = source
        self.job = job
        self.job_index = job_index
        self.step_index = step_index
        self.prefix = prefix

    def at(self, field: str | None = None, line: int | None = None) -> Location:
        if self.prefix and field:
            field = f"{self.prefix}.{field}"
        elif self.prefix:
            field = self.prefix
        return Location(
            job=self.job,
            job_index=self.job_index,
            step_index=self.step_index,
            field=field,
            line=line,
            source=self.source,
        )

    def fail(self, message: str, field: str | None = None, line: int | None = None) -> MalformedDocument:
        return MalformedDocument(message, self.at(field, line))

    def step(self, index: int) -> _Scope:
        return _Scope(self.source, self.job, self.job_index, index, self.prefix)

    def under(self, prefix: str) -> _Scope:
        combined = f"{self.prefix}.{prefix}" if self.prefix else prefix
        return _Scope(self.source, self.job, self.job_index, self.step_index, combined)


def _check_keys(mapping: dict, allowed: frozenset[str], scope: _Scope, what: str) -> None:
    for key in mapping:
        if not isinstance(key, str) or key not in allowed:
            raise scope.fail(
                f"Unknown {what} key {key!r} (allowed: {', '.join(sorted(allowed))})",
                line=_line_of(mapping, key) if isinstance(key, str) else _line_of(mapping),
            )


def _mapping(value: object, scope: _Scope, field: str, parent: object = None) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise scope.fail(
            f"{field} must be a mapping, got {type(value).__name__}",
            field,
            _line_of(parent, field.rsplit(".", 1)[-1]),
        )
    return value


def _string(value: object, scope: _Scope, field: str, parent: object = None) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    raise scope.fail(
        f"{field} must be a string, got {type(value).__name__}",
        field,
        _line_of(parent, field.rsplit(".", 1)[-1]),
    )


def _string_list(value: object, scope: _Scope, field: str, parent: object = None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise scope.fail(
        f"{field} must be a string or a list of strings",
        field,
        _line_of(parent, field.rsplit(".", 1)[-1]),
    )


def _number_or_expression(
    value: object, scope: _Scope, field: str, parent: object = None
) -> int | float | str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise scope.fail(f"{field} must be a number", field, _line_of(parent, field))
    if isinstance(value, (int, float)):
        if value <= 0:
            raise scope.fail(f"{field} must be positive", field, _line_of(parent, field))
        return value
    if isinstance(value, str) and value.strip().startswith("${{"):
        return value
    raise scope.fail(f"{field} must be a number or an expression", field, _line_of(parent, field))


def _bool_or_expression(value: object, scope: _Scope, field: str, parent: object = None) -> bool | str | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().startswith("${{"):
        return value
    raise scope.fail(f"{field} must be a boolean or an expression", field, _line_of(parent, field))


def parse_permissions(value: object, scope: _Scope, parent: object = None) -> Permissions:
    if isinstance(value, str):
        if value not in PERMISSION_SHORTHANDS:
            raise scope.fail(
                f"permissions shorthand must be one of {sorted(PERMISSION_SHORTHANDS)}, got {value!r}",
                "permissions",
                _line_of(parent, "permissions"),
            )
        return Permissions(shorthand=value)
    mapping = _mapping(value, scope, "permissions", parent)
    scopes: dict[PermissionScope, AccessLevel] = {}
    for key, level in mapping.items():
        line = _line_of(mapping, key)
        try:
            perm_scope = PermissionScope(key)
        except ValueError:
            allowed = ", ".join(s.value for s in PermissionScope)
            raise scope.fail(
                f"Unknown permission scope {key!r} (allowed: {allowed})",
                f"permissions.{key}",
                line,
            ) from None
        try:
            scopes[perm_scope] = AccessLevel(level)
        except ValueError:
            raise scope.fail(
                f"Permission {key!r} must be read, write or none, got {level!r}",
                f"permissions.{key}",
                line,
            ) from None
    return Permissions(scopes=scopes)


def parse_concurrency(value: object, scope: _Scope, parent: object = None) -> Concurrency:
    if isinstance(value, str):
        return Concurrency(group=value)
    mapping = _mapping(value, scope, "concurrency", parent)
    _check_keys(mapping, frozenset({"group", "cancel-in-progress"}), scope.under("concurrency"), "concurrency")
    if "group" not in mapping:
        raise scope.fail("concurrency requires a group", "concurrency", _line_of(mapping))
    return Concurrency(
        group=_string(mapping["group"], scope, "concurrency.group", mapping),
        cancel_in_progress=_bool_or_expression(
            mapping.get("cancel-in-progress"), scope, "concurrency.cancel-in-progress", mapping
        ),
    )


def _parse_inputs(
    value: object, scope: _Scope, allowed_types: frozenset[str], require_type: bool, parent: object
) -> tuple[InputDeclaration, ...]:
    mapping = _mapping(value, scope, "inputs", parent)
    inputs: list[InputDeclaration] = []
    for name, spec in mapping.items():
        field = f"inputs.{name}"
        line = _line_of(mapping, name)
        spec_map = _mapping(spec, scope, field, mapping)
        _check_keys(spec_map, INPUT_KEYS, scope.under(field), "input")
        if "type" not in spec_map and require_type:
            raise scope.fail(f"Input {name!r} must declare a type", field, line)
        input_type = spec_map.get("type", "string")
        if not isinstance(input_type, str) or input_type not in allowed_types:
            raise scope.fail(
                f"Input {name!r} has unsupported type {input_type!r} "
                f"(allowed: {', '.join(sorted(allowed_types))})",
                f"{field}.type",
                line,
            )
        options = _string_list(spec_map.get("options"), scope, f"{field}.options", spec_map)
        if input_type == "choice" and not options:
            raise scope.fail(f"Choice input {name!r} requires options", field, line)
        required = spec_map.get("required")
        if required is not None and not isinstance(required, bool):
            raise scope.fail(f"Input {name!r} required must be a boolean", f"{field}.required", line)
        description = spec_map.get("description")
        inputs.append(
            InputDeclaration(
                name=str(name),
                type=input_type,
                description=None if description is None else _string(description, scope, f"{field}.description"),
                required=required,
                default=plain(spec_map.get("default")),
                options=options,
            )
        )
    return tuple(inputs)


def _parse_cron(expression: object, scope: _Scope, line: int | None) -> str:
    if not isinstance(expression, str):
        raise scope.fail("cron must be a string", "on.schedule", line)
    fields = expression.split()
    if len(fields) != 5 or not all(_CRON_FIELD_RE.match(f) for f in fields):
        raise scope.fail(f"Malformed cron expression {expression!r} (expected 5 fields)", "on.schedule", line)
    return expression


def _parse_trigger(kind: TriggerKind, config: object, scope: _Scope, parent: object) -> Trigger:
    field = f"on.{kind.value}"
    line = _line_of(parent, kind.value)

    if kind is TriggerKind.SCHEDULE:
        if not isinstance(config, list) or not config:
            raise scope.fail("schedule must be a non-empty list of cron entries", field, line)
        crons: list[str] = []
        for entry in config:
            entry_map = _mapping(entry, scope, field)
            _check_keys(entry_map, TRIGGER_FIELDS[kind], scope.under(field), "schedule")
            crons.append(_parse_cron(entry_map.get("cron"), scope, _line_of(entry_map) or line))
        return ScheduleTrigger(crons=tuple(crons))

    mapping = _mapping(config, scope, field, parent)
    _check_keys(mapping, TRIGGER_FIELDS[kind], scope.under(field), f"{kind.value} trigger")
    sub = scope.under(field)

    def strings(key: str) -> tuple[str, ...]:
        return _string_list(mapping.get(key), sub, key, mapping)

    if kind is TriggerKind.PUSH:
        return PushTrigger(
            branches=strings("branches"),
            branches_ignore=strings("branches-ignore"),
            tags=strings("tags"),
            tags_ignore=strings("tags-ignore"),
            paths=strings("paths"),
            paths_ignore=strings("paths-ignore"),
        )
    if kind is TriggerKind.PULL_REQUEST:
        return PullRequestTrigger(
            types=strings("types"),
            branches=strings("branches"),
            branches_ignore=strings("branches-ignore"),
            paths=strings("paths"),
            paths_ignore=strings("paths-ignore"),
        )
    if kind is TriggerKind.RELEASE:
        return ReleaseTrigger(types=strings("types"))
    if kind is TriggerKind.WORKFLOW_DISPATCH:
        return WorkflowDispatchTrigger(
            inputs=_parse_inputs(mapping.get("inputs"), sub, DISPATCH_INPUT_TYPES, False, mapping)
        )

    secrets_map = _mapping(mapping.get("secrets"), sub, "secrets", mapping)
    secrets: list[SecretDeclaration] = []
    for name, spec in secrets_map.items():
        spec_map = _mapping(spec, sub, f"secrets.{name}", secrets_map)
        _check_keys(spec_map, frozenset({"description", "required"}), sub.under(f"secrets.{name}"), "secret")
        required = spec_map.get("required")
        if required is not None and not isinstance(required, bool):
            raise sub.fail(f"Secret {name!r} required must be a boolean", f"secrets.{name}", _line_of(secrets_map, name))
        description = spec_map.get("description")
        secrets.append(
            SecretDeclaration(
                name=str(name),
                description=None if description is None else str(description),
                required=required,
            )
        )
    return WorkflowCallTrigger(
        inputs=_parse_inputs(mapping.get("inputs"), sub, CALL_INPUT_TYPES, True, mapping),
        secrets=tuple(secrets),
        outputs=plain(_mapping(mapping.get("outputs"), sub, "outputs", mapping)),
    )


def _trigger_kind(name: object, scope: _Scope, line: int | None) -> TriggerKind:
    try:
        return TriggerKind(name)
    except ValueError:
        allowed = ", ".join(k.value for k in TriggerKind)
        raise scope.fail(f"Unsupported trigger {name!r} (supported: {allowed})", "on", line) from None


def parse_triggers(value: object, scope: _Scope, parent: object) -> tuple[Trigger, ...]:
    line = _line_of(parent, "on")
    if isinstance(value, str):
        kind = _trigger_kind(value, scope, line)
        return (_parse_trigger(kind, None, scope, {}),)
    if isinstance(value, list):
        if not value:
            raise scope.fail("on must name at least one trigger", "on", line)
        triggers: list[Trigger] = []
        seen: set[TriggerKind] = set()
        for name in value:
            kind = _trigger_kind(name, scope, line)
            if kind in seen:
                raise scope.fail(f"Trigger {kind.value!r} listed twice", "on", line)
            seen.add(kind)
            triggers.append(_parse_trigger(kind, None, scope, {}))
        return tuple(triggers)
    if isinstance(value, dict):
        if not value:
            raise scope.fail("on must name at least one trigger", "on", line)
        return tuple(
            _parse_trigger(_trigger_kind(name, scope, _line_of(value, name)), config, scope, value)
            for name, config in value.items()
        )
    raise scope.fail("on must be a string, a list or a mapping", "on", line)


def _parse_matrix(value: object, scope: _Scope, parent: object) -> Matrix:
    strategy = _mapping(value, scope, "strategy", parent)
    _check_keys(strategy, frozenset({"matrix", "fail-fast", "max-parallel"}), scope.under("strategy"), "strategy")

    fail_fast = _bool_or_expression(strategy.get("fail-fast"), scope, "strategy.fail-fast", strategy)
    max_parallel = strategy.get("max-parallel")
    if max_parallel is not None:
        max_parallel = _number_or_expression(max_parallel, scope, "strategy.max-parallel", strategy)

    matrix = strategy.get("matrix")
    if isinstance(matrix, str):
        return Matrix(expression=matrix, fail_fast=fail_fast, max_parallel=max_parallel)

    matrix_map = _mapping(matrix, scope, "strategy.matrix", strategy)
    axes: list[tuple[str, Any]] = []
    include: tuple[dict[str, object], ...] = ()
    exclude: tuple[dict[str, object], ...] = ()
    for key, values in matrix_map.items():
        field = f"strategy.matrix.{key}"
        line = _line_of(matrix_map, key)
        if key in ("include", "exclude"):
            if not isinstance(values, list) or not all(isinstance(v, dict) for v in values):
                raise scope.fail(f"matrix {key} must be a list of mappings", field, line)
            entries = tuple(plain(v) for v in values)
            if key == "include":
                include = entries
            else:
                exclude = entries
        elif isinstance(values, list):
            if not values:
                raise scope.fail(f"matrix axis {key!r} must not be empty", field, line)
            axes.append((str(key), tuple(plain(v) for v in values)))
        elif isinstance(values, str) and values.strip().startswith("${{"):
            axes.append((str(key), values))
        else:
            raise scope.fail(f"matrix axis {key!r} must be a list of values", field, line)

    axis_names = {name for name, _ in axes}
    for entry in exclude:
        for key in entry:
            if key not in axis_names:
                raise scope.fail(
                    f"matrix exclude references unknown axis {key!r}",
                    "strategy.matrix.exclude",
                    _line_of(matrix_map, "exclude"),
                )

    return Matrix(
        axes=tuple(axes),
        include=include,
        exclude=exclude,
        fail_fast=fail_fast,
        max_parallel=max_parallel,
    )


def _parse_environment(value: object, scope: _Scope, parent: object) -> Environment:
    if isinstance(value, str):
        return Environment(name=value)
    mapping = _mapping(value, scope, "environment", parent)
    _check_keys(mapping, frozenset({"name", "url"}), scope.under("environment"), "environment")
    if "name" not in mapping:
        raise scope.fail("environment requires a name", "environment", _line_of(mapping))
    url = mapping.get("url")
    return Environment(
        name=_string(mapping["name"], scope, "environment.name", mapping),
        url=None if url is None else _string(url, scope, "environment.url", mapping),
    )


def parse_step(raw: object, scope: _Scope, *, require_shell: bool = False) -> Step:
    if not isinstance(raw, dict):
        raise scope.fail("step must be a mapping")
    line = _line_of(raw)
    _check_keys(raw, STEP_KEYS, scope, "step")

    has_uses = "uses" in raw
    has_run = "run" in raw
    if has_uses == has_run:
        raise scope.fail("step must have exactly one of 'uses' or 'run'", line=line)

    env = plain(_mapping(raw.get("env"), scope, "env", raw))
    condition = raw.get("if")
    common: dict[str, Any] = {
        "id": None if raw.get("id") is None else _string(raw["id"], scope, "id", raw),
        "name": None if raw.get("name") is None else _string(raw["name"], scope, "name", raw),
        "condition": None if condition is None else _string(condition, scope, "if", raw),
        "env": env,
        "continue_on_error": _bool_or_expression(raw.get("continue-on-error"), scope, "continue-on-error", raw),
        "timeout_minutes": _number_or_expression(raw.get("timeout-minutes"), scope, "timeout-minutes", raw),
        "line": line,
    }

    if has_uses:
        for key in ("shell", "working-directory"):
            if key in raw:
                raise scope.fail(f"'{key}' is only valid on run steps", key, _line_of(raw, key))
        uses_text = _string(raw["uses"], scope, "uses", raw)
        try:
            ref = ActionRef.parse(uses_text)
        except ValueError as e:
            raise scope.fail(str(e), "uses", _line_of(raw, "uses")) from e
        return ActionStep(uses=ref, inputs=plain(_mapping(raw.get("with"), scope, "with", raw)), **common)

    if "with" in raw:
        raise scope.fail("'with' is only valid on action steps", "with", _line_of(raw, "with"))
    run = raw["run"]
    if not isinstance(run, str) or not run.strip():
        raise scope.fail("run must be a non-empty string", "run", _line_of(raw, "run"))
    shell = raw.get("shell")
    if require_shell and shell is None:
        raise scope.fail("run steps in a composite action must declare a shell", "shell", line)
    working_directory = raw.get("working-directory")
    return RunStep(
        run=run,
        shell=None if shell is None else _string(shell, scope, "shell", raw),
        working_directory=None
        if working_directory is None
        else _string(working_directory, scope, "working-directory", raw),
        **common,
    )


def parse_steps(value: object, *, source: str | None = None, field: str = "steps") -> tuple[Step, ...]:
    """Parse a standalone list of steps (used by pattern files)."""

    if not isinstance(value, list) or not value:
        raise MalformedDocument(f"{field} must be a non-empty list of steps", Location(field=field, source=source))
    return tuple(
        parse_step(raw, _Scope(source, prefix=f"{field}[{index}]")) for index, raw in enumerate(value)
    )


def parse_job(job_id: object, raw: object, scope: _Scope, parent: object = None) -> Job:
    line = _line_of(parent, job_id) if isinstance(job_id, str) else None
    if not isinstance(job_id, str) or not _JOB_ID_RE.match(job_id):
        raise scope.fail(
            f"Invalid job id {job_id!r} (letters, digits, '-' and '_'; must not start with a digit)",
            line=line,
        )
    if not isinstance(raw, dict):
        raise scope.fail(f"job {job_id!r} must be a mapping", line=line)
    line = _line_of(raw) or line
    _check_keys(raw, JOB_KEYS, scope, "job")

    uses_text = raw.get("uses")
    if uses_text is not None:
        for key in ("steps", "runs-on"):
            if key in raw:
                raise scope.fail(f"job calling a reusable workflow cannot declare '{key}'", key, _line_of(raw, key))
    else:
        for key in ("with", "secrets"):
            if key in raw:
                raise scope.fail(f"'{key}' is only valid on jobs that call a reusable workflow", key, _line_of(raw, key))
        if "runs-on" not in raw:
            raise scope.fail("job requires 'runs-on' (or 'uses' for a reusable workflow)", line=line)
        if not isinstance(raw.get("steps"), list) or not raw["steps"]:
            raise scope.fail("job requires a non-empty list of steps", "steps", _line_of(raw, "steps"))

    uses = None
    if uses_text is not None:
        try:
            uses = ActionRef.parse(_string(uses_text, scope, "uses", raw))
        except ValueError as e:
            raise scope.fail(str(e), "uses", _line_of(raw, "uses")) from e

    steps = tuple(
        parse_step(step, scope.step(index)) for index, step in enumerate(raw.get("steps") or [])
    )

    runs_on: tuple[str, ...] = ()
    if "runs-on" in raw:
        runs_on = _string_list(raw["runs-on"], scope, "runs-on", raw)
        if not runs_on:
            raise scope.fail("runs-on must name at least one runner label", "runs-on", _line_of(raw, "runs-on"))

    secrets = raw.get("secrets")
    if secrets is not None and secrets != "inherit":
        secrets = plain(_mapping(secrets, scope, "secrets", raw))

    condition = raw.get("if")
    name = raw.get("name")
    return Job(
        id=job_id,
        name=None if name is None else _string(name, scope, "name", raw),
        runs_on=runs_on,
        steps=steps,
        needs=tuple(dict.fromkeys(_string_list(raw.get("needs"), scope, "needs", raw))),
        matrix=_parse_matrix(raw["strategy"], scope, raw) if "strategy" in raw else None,
        environment=_parse_environment(raw["environment"], scope, raw) if "environment" in raw else None,
        permissions=parse_permissions(raw["permissions"], scope, raw) if "permissions" in raw else None,
        concurrency=parse_concurrency(raw["concurrency"], scope, raw) if "concurrency" in raw else None,
        timeout_minutes=_number_or_expression(raw.get("timeout-minutes"), scope, "timeout-minutes", raw),
        condition=None if condition is None else _string(condition, scope, "if", raw),
        outputs=plain(_mapping(raw.get("outputs"), scope, "outputs", raw)),
        env=plain(_mapping(raw.get("env"), scope, "env", raw)),
        uses=uses,
        with_inputs=plain(_mapping(raw.get("with"), scope, "with", raw)),
        secrets=secrets,
        extra={key: plain(raw[key]) for key in JOB_PASSTHROUGH_KEYS if key in raw},
        line=line,
    )


def parse_jobs(value: object, source: str | None, parent: object = None) -> tuple[Job, ...]:
    """Parse a `jobs:` mapping (shared by workflow and pattern documents)."""

    root = _Scope(source)
    if not isinstance(value, dict) or not value:
        raise root.fail("jobs must be a non-empty mapping", "jobs", _line_of(parent, "jobs"))
    return tuple(
        parse_job(job_id, raw, _Scope(source, job_id if isinstance(job_id, str) else None, index), value)
        for index, (job_id, raw) in enumerate(value.items())
    )


def _check_dependencies(jobs: tuple[Job, ...], source: str | None) -> None:
    edges = dependency_edges(jobs)
    ids = list(edges)
    missing = unknown_needs(edges)
    if missing:
        job_id, dep = missing[0]
        index = ids.index(job_id)
        raise MalformedDocument(
            f"Job {job_id!r} needs unknown job {dep!r}",
            Location(job=job_id, job_index=index, field="needs", line=jobs[index].line, source=source),
        )
    try:
        topological_order(edges)
    except CyclicDependency as e:
        index = ids.index(e.cycle[0]) if e.cycle else 0
        raise MalformedDocument(
            str(e),
            Location(
                job=ids[index],
                job_index=index,
                field="needs",
                line=jobs[index].line,
                source=source,
            ),
        ) from e


def _workflow_from_mapping(data: dict, source: str | None) -> Workflow:
    root = _Scope(source)
    _check_keys(data, WORKFLOW_KEYS, root, "top-level")
    for required in ("on", "jobs"):
        if required not in data:
            raise root.fail(f"workflow requires '{required}'", line=_line_of(data))

    jobs = parse_jobs(data["jobs"], source, data)
    _check_dependencies(jobs, source)

    name = data.get("name")
    run_name = data.get("run-name")
    return Workflow(
        triggers=parse_triggers(data["on"], root, data),
        jobs=jobs,
        name=None if name is None else _string(name, root, "name", data),
        run_name=None if run_name is None else _string(run_name, root, "run-name", data),
        permissions=parse_permissions(data["permissions"], root, data) if "permissions" in data else None,
        env=plain(_mapping(data.get("env"), root, "env", data)),
        defaults=plain(_mapping(data.get("defaults"), root, "defaults", data)),
        concurrency=parse_concurrency(data["concurrency"], root, data) if "concurrency" in data else None,
        line=_line_of(data),
    )


def _composite_from_mapping(data: dict, source: str | None) -> CompositeAction:
    root = _Scope(source)
    _check_keys(data, ACTION_KEYS, root, "action")
    runs = _mapping(data.get("runs"), root, "runs", data)
    using = runs.get("using")
    if using != "composite":
        raise root.fail(
            f"only composite actions are supported, got runs.using={using!r}",
            "runs.using",
            _line_of(runs, "using"),
        )
    _check_keys(runs, frozenset({"using", "steps"}), root.under("runs"), "runs")
    raw_steps = runs.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        raise root.fail("composite action requires a non-empty list of steps", "runs.steps", _line_of(runs, "steps"))

    steps = tuple(
        parse_step(raw, root.under(f"runs.steps[{index}]"), require_shell=True)
        for index, raw in enumerate(raw_steps)
    )
    name = data.get("name")
    description = data.get("description")
    return CompositeAction(
        steps=steps,
        name=None if name is None else _string(name, root, "name", data),
        description=None if description is None else _string(description, root, "description", data),
        inputs=plain(_mapping(data.get("inputs"), root, "inputs", data)),
        outputs=plain(_mapping(data.get("outputs"), root, "outputs", data)),
        line=_line_of(data),
    )


def _load_mapping(text: str, source: str | None) -> dict:
    data = load_yaml(text, source=source)
    if not isinstance(data, dict):
        raise MalformedDocument(
            "document must be a mapping",
            Location(line=1, source=source),
        )
    return data


def _is_action_document(data: dict) -> bool:
    return "runs" in data and "jobs" not in data


def parse_workflow(text: str, *, source: str | None = None) -> Workflow:
    """Parse workflow YAML text into a `Workflow`."""

    data = _load_mapping(text, source)
    if _is_action_document(data):
        raise MalformedDocument("document is an action definition, not a workflow", Location(line=1, source=source))
    workflow = _workflow_from_mapping(data, source)
    logger.debug(
        "Parsed workflow",
        extra={"source": source, "jobs": len(workflow.jobs), "triggers": len(workflow.triggers)},
    )
    return workflow


def parse_composite_action(text: str, *, source: str | None = None) -> CompositeAction:
    """Parse composite action metadata (`action.yml`)."""

    return _composite_from_mapping(_load_mapping(text, source), source)


def parse_document(text: str, *, source: str | None = None) -> Workflow | CompositeAction:
    """Parse either a workflow or a composite action, based on its shape."""

    data = _load_mapping(text, source)
    if _is_action_document(data):
        return _composite_from_mapping(data, source)
    return _workflow_from_mapping(data, source)


def load_workflow(path: Path) -> Workflow:
    return parse_workflow(path.read_text(encoding="utf-8"), source=str(path))
