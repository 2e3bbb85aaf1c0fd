"""Unit tests for workflow parsing and structural validation."""

from __future__ import annotations

import pytest

from github_workflow_toolkit.document.errors import MalformedDocument
from github_workflow_toolkit.document.model import (
    AccessLevel,
    ActionRefKind,
    ActionStep,
    CompositeAction,
    PermissionScope,
    PushTrigger,
    RunStep,
    ScheduleTrigger,
    TriggerKind,
    WorkflowDispatchTrigger,
)
from github_workflow_toolkit.document.parser import (
    parse_composite_action,
    parse_document,
    parse_workflow,
)


def _job(body: str, *, on: str = "push") -> str:
    return f"on: {on}\njobs:\n{body}"


def test_parse_clean_workflow(clean_workflow_text: str) -> None:
    workflow = parse_workflow(clean_workflow_text, source="ci.yml")

    assert workflow.name == "CI"
    assert workflow.trigger_kinds == {TriggerKind.PUSH, TriggerKind.PULL_REQUEST}
    assert workflow.permissions is not None
    assert workflow.permissions.access(PermissionScope.CONTENTS) is AccessLevel.READ
    assert workflow.permissions.access(PermissionScope.ID_TOKEN) is AccessLevel.NONE
    assert workflow.concurrency is not None
    assert workflow.concurrency.cancel_in_progress is True
    assert workflow.job_ids == ("build",)

    build = workflow.job("build")
    assert build.runs_on == ("ubuntu-latest",)
    assert build.timeout_minutes == 10
    checkout, run = build.steps
    assert isinstance(checkout, ActionStep)
    assert checkout.uses.slug == "actions/checkout"
    assert isinstance(run, RunStep)
    assert run.name == "Build"


def test_on_key_is_not_read_as_boolean() -> None:
    workflow = parse_workflow(_job("  a:\n    runs-on: x\n    steps:\n      - run: echo hi\n"))

    assert workflow.trigger_kinds == {TriggerKind.PUSH}


def test_jobs_and_steps_keep_declaration_order() -> None:
    text = _job(
        "  zeta:\n    runs-on: x\n    steps:\n      - run: one\n      - run: two\n"
        "  alpha:\n    runs-on: x\n    steps:\n      - run: three\n"
    )
    workflow = parse_workflow(text)

    assert workflow.job_ids == ("zeta", "alpha")
    assert [step.run for _, _, _, step in workflow.iter_steps()] == ["one", "two", "three"]


def test_trigger_list_and_mapping_forms() -> None:
    text = """\
on:
  push:
    branches: [main]
    paths-ignore: ["docs/**"]
  schedule:
    - cron: "0 3 * * 1"
  workflow_dispatch:
    inputs:
      target:
        type: choice
        options: [staging, production]
jobs:
  a:
    runs-on: x
    steps:
      - run: echo
"""
    workflow = parse_workflow(text)
    push, schedule, dispatch = workflow.triggers

    assert isinstance(push, PushTrigger)
    assert push.branches == ("main",)
    assert push.paths_ignore == ("docs/**",)
    assert isinstance(schedule, ScheduleTrigger)
    assert schedule.crons == ("0 3 * * 1",)
    assert isinstance(dispatch, WorkflowDispatchTrigger)
    assert dispatch.inputs[0].options == ("staging", "production")

    listed = parse_workflow("on: [push, pull_request]\n" + "jobs:\n  a:\n    runs-on: x\n    steps:\n      - run: echo\n")
    assert [t.kind for t in listed.triggers] == [TriggerKind.PUSH, TriggerKind.PULL_REQUEST]


def test_duplicate_job_id_is_malformed_with_line() -> None:
    text = _job(
        "  build:\n    runs-on: x\n    steps:\n      - run: a\n"
        "  build:\n    runs-on: x\n    steps:\n      - run: b\n"
    )
    with pytest.raises(MalformedDocument) as exc:
        parse_workflow(text, source="dup.yml")

    assert "Duplicate key 'build'" in str(exc.value)
    assert exc.value.location.line == 7
    assert exc.value.location.source == "dup.yml"


def test_unknown_top_level_key_is_malformed() -> None:
    text = "on: push\nstages: []\njobs:\n  a:\n    runs-on: x\n    steps:\n      - run: a\n"
    with pytest.raises(MalformedDocument) as exc:
        parse_workflow(text)

    assert "Unknown top-level key 'stages'" in exc.value.message
    assert exc.value.location.line == 2


def test_invalid_yaml_reports_position() -> None:
    with pytest.raises(MalformedDocument) as exc:
        parse_workflow("on: push\njobs:\n  a: [unclosed\n")

    assert exc.value.message.startswith("Invalid YAML")
    assert exc.value.location.line is not None


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ("  a:\n    steps:\n      - run: a\n", "requires 'runs-on'"),
        ("  a:\n    runs-on: x\n    steps: []\n", "non-empty list of steps"),
        ("  a:\n    runs-on: x\n    steps:\n      - name: nothing\n", "exactly one of 'uses' or 'run'"),
        ("  a:\n    runs-on: x\n    steps:\n      - run: a\n        with: {x: 1}\n", "'with' is only valid"),
        ("  a:\n    runs-on: x\n    steps:\n      - uses: actions/checkout@v4\n        shell: bash\n", "only valid on run"),
        ("  a:\n    runs-on: x\n    needs: ghost\n    steps:\n      - run: a\n", "needs unknown job 'ghost'"),
        ("  a:\n    uses: o/r/.github/workflows/x.yml@v1\n    runs-on: x\n", "cannot declare 'runs-on'"),
        ("  1st:\n    runs-on: x\n    steps:\n      - run: a\n", "Invalid job id"),
        ("  a:\n    runs-on: x\n    timeout-minutes: 0\n    steps:\n      - run: a\n", "must be positive"),
    ],
)
def test_structural_errors(body: str, message: str) -> None:
    with pytest.raises(MalformedDocument) as exc:
        parse_workflow(_job(body))

    assert message in exc.value.message


def test_unknown_permission_scope_is_malformed() -> None:
    text = "on: push\npermissions:\n  actions: read\njobs:\n  a:\n    runs-on: x\n    steps:\n      - run: a\n"
    with pytest.raises(MalformedDocument) as exc:
        parse_workflow(text)

    assert exc.value.location.field == "permissions.actions"


def test_unsupported_trigger_is_malformed() -> None:
    with pytest.raises(MalformedDocument, match="Unsupported trigger 'issues'"):
        parse_workflow("on: issues\njobs:\n  a:\n    runs-on: x\n    steps:\n      - run: a\n")


def test_bad_cron_is_malformed() -> None:
    text = "on:\n  schedule:\n    - cron: '0 3 * *'\njobs:\n  a:\n    runs-on: x\n    steps:\n      - run: a\n"
    with pytest.raises(MalformedDocument, match="expected 5 fields"):
        parse_workflow(text)


def test_workflow_call_inputs_require_a_type() -> None:
    text = (
        "on:\n  workflow_call:\n    inputs:\n      env:\n        required: true\n"
        "jobs:\n  a:\n    runs-on: x\n    steps:\n      - run: a\n"
    )
    with pytest.raises(MalformedDocument, match="must declare a type"):
        parse_workflow(text)


@pytest.mark.parametrize(
    ("text", "message"),
    [
        (
            "on:\n  workflow_dispatch:\n    inputs:\n      target:\n        type: [string]\n",
            "unsupported type",
        ),
        (
            "on:\n  workflow_dispatch:\n    inputs:\n      target:\n        type: {name: string}\n",
            "unsupported type",
        ),
        ("on: [[push]]\n", "Unsupported trigger"),
        ("on: push\npermissions:\n  contents: [read]\n", "must be read, write or none"),
    ],
)
def test_non_string_values_are_malformed(text: str, message: str) -> None:
    with pytest.raises(MalformedDocument, match=message):
        parse_workflow(text + "jobs:\n  a:\n    runs-on: x\n    steps:\n      - run: a\n")


def test_matrix_exclude_must_reference_declared_axes() -> None:
    body = (
        "  a:\n    runs-on: x\n    strategy:\n      matrix:\n        node: [18, 20]\n"
        "        exclude:\n          - os: windows-latest\n    steps:\n      - run: a\n"
    )
    with pytest.raises(MalformedDocument, match="unknown axis 'os'"):
        parse_workflow(_job(body))


def test_matrix_axes_are_parsed() -> None:
    body = (
        "  a:\n    runs-on: x\n    strategy:\n      fail-fast: false\n      matrix:\n"
        "        node: [18, 20]\n        os: [ubuntu-latest]\n    steps:\n      - run: a\n"
    )
    matrix = parse_workflow(_job(body)).job("a").matrix

    assert matrix is not None
    assert matrix.axis("node") == (18, 20)
    assert matrix.fail_fast is False


def test_dependency_cycle_in_document_is_malformed() -> None:
    body = (
        "  a:\n    runs-on: x\n    needs: b\n    steps:\n      - run: a\n"
        "  b:\n    runs-on: x\n    needs: a\n    steps:\n      - run: b\n"
    )
    with pytest.raises(MalformedDocument, match="a -> b -> a"):
        parse_workflow(_job(body))


def test_reusable_workflow_job() -> None:
    body = "  call:\n    uses: octo/shared/.github/workflows/build.yml@v1.2.3\n    secrets: inherit\n"
    job = parse_workflow(_job(body)).job("call")

    assert job.is_reusable_call
    assert job.uses is not None
    assert job.uses.path == ".github/workflows/build.yml"
    assert job.uses.ref == "v1.2.3"
    assert job.secrets == "inherit"


def test_action_references_are_classified() -> None:
    body = (
        "  a:\n    runs-on: x\n    steps:\n"
        "      - uses: ./local-action\n"
        "      - uses: docker://alpine:3.19\n"
        "      - uses: actions/cache/restore@v4\n"
    )
    local, docker, remote = parse_workflow(_job(body)).job("a").steps

    assert local.uses.kind is ActionRefKind.LOCAL
    assert docker.uses.kind is ActionRefKind.DOCKER
    assert docker.uses.ref == "3.19"
    assert remote.uses.kind is ActionRefKind.REMOTE
    assert remote.uses.slug == "actions/cache/restore"


def test_composite_action_requires_shell_on_run_steps() -> None:
    text = "name: setup\nruns:\n  using: composite\n  steps:\n    - run: echo hi\n"
    with pytest.raises(MalformedDocument) as exc:
        parse_composite_action(text)

    assert "must declare a shell" in exc.value.message
    assert exc.value.location.field == "runs.steps[0].shell"


def test_parse_document_detects_composite_actions() -> None:
    text = "name: setup\nruns:\n  using: composite\n  steps:\n    - run: echo hi\n      shell: bash\n"
    document = parse_document(text)

    assert isinstance(document, CompositeAction)
    assert document.steps[0].shell == "bash"


def test_parse_workflow_rejects_action_documents() -> None:
    text = "name: setup\nruns:\n  using: composite\n  steps:\n    - run: echo hi\n      shell: bash\n"
    with pytest.raises(MalformedDocument, match="action definition"):
        parse_workflow(text)
