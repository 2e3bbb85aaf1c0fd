"""Unit tests for the lint rules and the rule engine."""

from __future__ import annotations

import pytest

from github_workflow_toolkit.document.model import Workflow
from github_workflow_toolkit.document.parser import parse_workflow
from github_workflow_toolkit.rules.caching import hashes_lockfile
from github_workflow_toolkit.rules.engine import DEFAULT_RULES, RuleEngine, UnknownRule
from github_workflow_toolkit.rules.findings import Finding, Severity
from github_workflow_toolkit.rules.injection import is_untrusted_expression

SHA = "b4ffde65f46336ab88eb53be808477a3936bae11"

HEADER = """\
on: workflow_dispatch
permissions:
  contents: read
jobs:
  a:
    runs-on: ubuntu-latest
    timeout-minutes: 5
    steps:
"""


def _steps(*lines: str) -> Workflow:
    return parse_workflow(HEADER + "".join(f"      {line}\n" for line in lines))


def _findings(workflow: Workflow, rule_id: str) -> list[Finding]:
    return [f for f in RuleEngine().evaluate(workflow) if f.rule_id == rule_id]


def test_clean_workflow_has_no_findings(clean_workflow: Workflow) -> None:
    assert RuleEngine().evaluate(clean_workflow) == []


# explicit-permissions


@pytest.mark.parametrize("jobs", [1, 3])
def test_missing_permissions_fires_exactly_once_at_workflow_scope(jobs: int) -> None:
    body = "".join(f"  j{i}:\n    runs-on: x\n    steps:\n      - run: a\n" for i in range(jobs))
    workflow = parse_workflow("on: push\njobs:\n" + body)

    findings = _findings(workflow, "explicit-permissions")

    assert len(findings) == 1
    assert findings[0].severity is Severity.FAIL
    assert findings[0].location.job is None
    assert findings[0].location.path == "workflow"


def test_job_level_permissions_on_every_job_satisfy_the_rule() -> None:
    workflow = parse_workflow(
        "on: push\njobs:\n  a:\n    runs-on: x\n    permissions:\n      contents: read\n    steps:\n      - run: a\n"
    )

    assert _findings(workflow, "explicit-permissions") == []


def test_write_all_permissions_warn() -> None:
    workflow = parse_workflow("on: push\npermissions: write-all\njobs:\n  a:\n    runs-on: x\n    steps:\n      - run: a\n")

    findings = _findings(workflow, "write-all-permissions")

    assert [f.severity for f in findings] == [Severity.WARN]
    assert findings[0].location.path == "permissions"


# pinned-actions


@pytest.mark.parametrize(
    "ref",
    [SHA, SHA.upper(), "0c45773b623bea8c8e75f6c82b208c3cf94ea4f9"],
)
def test_full_sha_is_never_flagged(ref: str) -> None:
    workflow = _steps(f"- uses: actions/checkout@{ref}", f"- uses: someone/tool/sub@{ref}")

    assert _findings(workflow, "pinned-actions") == []


@pytest.mark.parametrize("ref", ["main", "master", "latest"])
def test_branch_refs_fail(ref: str) -> None:
    workflow = _steps(f"- uses: actions/checkout@{ref}")

    findings = _findings(workflow, "pinned-actions")

    assert len(findings) == 1
    assert findings[0].severity is Severity.FAIL
    assert findings[0].location.path == "jobs.a.steps[0].uses"


@pytest.mark.parametrize(
    ("ref", "severity"),
    [
        ("v4", Severity.WARN),
        ("v4.1", Severity.WARN),
        ("v4.1.1", None),
        ("b4ffde6", Severity.FAIL),
        ("feature/foo", Severity.FAIL),
    ],
)
def test_tag_and_branch_like_refs(ref: str, severity: Severity | None) -> None:
    findings = _findings(_steps(f"- uses: actions/setup-node@{ref}"), "pinned-actions")

    assert [f.severity for f in findings] == ([] if severity is None else [severity])


def test_unpinned_action_and_reusable_workflow_fail() -> None:
    workflow = parse_workflow(
        "on: push\npermissions: {}\njobs:\n"
        "  a:\n    runs-on: x\n    timeout-minutes: 1\n    steps:\n      - uses: actions/checkout\n"
        "  b:\n    uses: octo/shared/.github/workflows/ci.yml@main\n"
    )

    paths = [f.location.path for f in _findings(workflow, "pinned-actions")]

    assert paths == ["jobs.a.steps[0].uses", "jobs.b.uses"]


def test_local_actions_and_docker_digests_pass() -> None:
    digest = "sha256:" + "a" * 64
    workflow = _steps("- uses: ./.github/actions/setup", f"- uses: docker://alpine@{digest}")

    assert _findings(workflow, "pinned-actions") == []


def test_known_action_messages_suggest_a_pinned_sha() -> None:
    (finding,) = _findings(_steps("- uses: actions/checkout@v4"), "pinned-actions")

    assert SHA in finding.message


# concurrency-guard


def test_push_without_concurrency_warns() -> None:
    workflow = parse_workflow("on: [push]\npermissions: {}\njobs:\n  a:\n    runs-on: x\n    steps:\n      - run: a\n")

    findings = _findings(workflow, "concurrency-guard")

    assert [f.severity for f in findings] == [Severity.WARN]
    assert findings[0].location.path == "workflow"


def test_other_triggers_do_not_need_concurrency() -> None:
    assert _findings(_steps("- run: a"), "concurrency-guard") == []


# secret-in-shell-interpolation


def test_pull_request_title_in_run_fails_at_that_step() -> None:
    workflow = _steps(
        "- run: echo ok",
        "- run: 'echo \"Title: ${{ github.event.pull_request.title }}\"'",
    )

    findings = _findings(workflow, "secret-in-shell-interpolation")

    assert len(findings) == 1
    assert findings[0].severity is Severity.FAIL
    assert findings[0].location.job == "a"
    assert findings[0].location.step_index == 1
    assert findings[0].location.line == 10


def test_secret_in_run_warns_and_env_indirection_passes() -> None:
    workflow = _steps(
        "- run: 'curl -H \"token: ${{ secrets.API_TOKEN }}\" https://example.test'",
        "- run: echo \"$TITLE\"",
        "  env:",
        "    TITLE: ${{ github.event.issue.title }}",
    )

    findings = _findings(workflow, "secret-in-shell-interpolation")

    assert [(f.severity, f.location.step_index) for f in findings] == [(Severity.WARN, 0)]


def test_trusted_contexts_are_not_flagged() -> None:
    workflow = _steps("- run: echo ${{ github.sha }} ${{ matrix.node }} ${{ github.event.pull_request.number }}")

    assert _findings(workflow, "secret-in-shell-interpolation") == []


@pytest.mark.parametrize(
    ("expression", "untrusted"),
    [
        ("github.head_ref", True),
        ("github.event.comment.body", True),
        ("github.event.head_commit.message", True),
        ("github.event.pull_request.head.ref", True),
        ("github.ref_name", False),
        ("github.event.pull_request.base.sha", False),
    ],
)
def test_untrusted_expressions(expression: str, untrusted: bool) -> None:
    assert is_untrusted_expression(expression) is untrusted


# timeout-present


def test_job_without_timeout_warns_but_reusable_calls_are_skipped() -> None:
    workflow = parse_workflow(
        "on: workflow_dispatch\npermissions: {}\njobs:\n"
        "  a:\n    runs-on: x\n    steps:\n      - run: a\n"
        f"  b:\n    uses: octo/shared/.github/workflows/ci.yml@{SHA}\n"
    )

    findings = _findings(workflow, "timeout-present")

    assert [f.location.job for f in findings] == ["a"]
    assert findings[0].severity is Severity.WARN


# cache-key-uses-lockfile


def test_cache_key_from_lockfile_passes() -> None:
    workflow = _steps(
        f"- uses: actions/cache@{SHA}",
        "  with:",
        "    path: ~/.npm",
        "    key: ${{ runner.os }}-npm-${{ hashFiles('**/package-lock.json') }}",
    )

    assert _findings(workflow, "cache-key-uses-lockfile") == []


@pytest.mark.parametrize(
    "key",
    [
        "static-key",
        "${{ runner.os }}-${{ hashFiles('**/*.ts') }}",
    ],
)
def test_cache_key_without_lockfile_warns(key: str) -> None:
    workflow = _steps(f"- uses: actions/cache@{SHA}", "  with:", "    path: dist", f"    key: {key}")

    findings = _findings(workflow, "cache-key-uses-lockfile")

    assert [f.severity for f in findings] == [Severity.WARN]
    assert findings[0].location.path == "jobs.a.steps[0].with.key"


def test_hashes_lockfile() -> None:
    assert hashes_lockfile("${{ hashFiles('**/poetry.lock', 'pyproject.toml') }}")
    assert not hashes_lockfile("${{ hashFiles('src/**') }}")


# engine


def test_findings_are_sorted_by_location(build_deploy: Workflow) -> None:
    findings = RuleEngine().evaluate(build_deploy)

    assert findings == sorted(findings, key=Finding.sort_key)
    assert findings[0].location.path == "workflow"
    assert [f.rule_id for f in findings if f.location.job == "build"] == ["timeout-present", "pinned-actions"]


def test_disabled_rules_are_skipped(build_deploy: Workflow) -> None:
    engine = RuleEngine(disabled=["timeout-present", "concurrency-guard"])

    rule_ids = {f.rule_id for f in engine.evaluate(build_deploy)}

    assert rule_ids == {"explicit-permissions", "pinned-actions"}


def test_unknown_disabled_rule_is_rejected() -> None:
    with pytest.raises(UnknownRule, match="no-such-rule"):
        RuleEngine(disabled=["no-such-rule"])


def test_rules_do_not_mutate_the_workflow(build_deploy: Workflow) -> None:
    before = repr(build_deploy)
    RuleEngine().evaluate(build_deploy)

    assert repr(build_deploy) == before


def test_rule_ids_are_unique() -> None:
    ids = [rule.rule_id for rule in DEFAULT_RULES]

    assert len(ids) == len(set(ids))
