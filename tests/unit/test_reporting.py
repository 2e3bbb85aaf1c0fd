"""Unit tests for report rendering."""

from __future__ import annotations

import json

import pytest
import yaml

from github_workflow_toolkit.composer.compose import compose
from github_workflow_toolkit.composer.library import matrix_test, staged_rollout
from github_workflow_toolkit.document.errors import MalformedDocument
from github_workflow_toolkit.document.location import Location
from github_workflow_toolkit.document.model import Workflow
from github_workflow_toolkit.reporting.render import (
    FileReport,
    render_composition,
    render_findings,
    summarize,
)
from github_workflow_toolkit.rules.engine import RuleEngine
from github_workflow_toolkit.rules.findings import Finding, Severity


@pytest.fixture
def reports(build_deploy: Workflow) -> list[FileReport]:
    broken = MalformedDocument("Duplicate key 'build'", Location(line=7, column=3, source="broken.yml"))
    return [
        FileReport(path="broken.yml", error=broken),
        FileReport(path="ci.yml"),
        FileReport(path="release.yml", findings=tuple(RuleEngine().evaluate(build_deploy))),
    ]


def test_summarize_counts_by_severity(reports: list[FileReport]) -> None:
    summary = summarize(reports)

    assert summary.files == 3
    assert summary.errors == 1
    assert summary.fail == 1
    assert summary.warn == 4


def test_table_lists_problem_files_and_a_summary(reports: list[FileReport]) -> None:
    text = render_findings(reports, "table")

    assert "broken.yml" in text
    assert "ERROR" in text
    assert "ci.yml" not in text
    assert "FAIL  explicit-permissions" in text
    assert text.rstrip().endswith("3 files checked: 1 fail, 4 warn, 1 unreadable")


def test_json_report_is_structured(reports: list[FileReport]) -> None:
    data = json.loads(render_findings(reports, "json"))

    assert data["summary"] == {"files": 3, "errors": 1, "fail": 1, "warn": 4}
    assert [f["path"] for f in data["files"]] == ["broken.yml", "ci.yml", "release.yml"]
    assert data["files"][0]["error"]["kind"] == "MalformedDocument"
    assert data["files"][0]["error"]["location"]["line"] == 7
    first = next(f for f in data["files"][2]["findings"] if f["rule_id"] == "explicit-permissions")
    assert first["severity"] == "fail"
    assert first["location"]["path"] == "workflow"


def test_github_annotations(reports: list[FileReport]) -> None:
    lines = render_findings(reports, "github").splitlines()

    assert lines[0].startswith("::error file=broken.yml,line=7,col=3,title=MalformedDocument::")
    assert any(line.startswith("::error file=release.yml") and "title=explicit-permissions" in line for line in lines)
    assert any(line.startswith("::warning file=release.yml") and "title=timeout-present" in line for line in lines)


def test_github_annotations_escape_newlines() -> None:
    finding = Finding("r", Severity.WARN, Location(line=1), "first\nsecond")
    text = render_findings([FileReport(path="a,b.yml", findings=(finding,))], "github")

    assert "file=a%2Cb.yml" in text
    assert "first%0Asecond" in text


def test_unknown_format_is_rejected(reports: list[FileReport]) -> None:
    with pytest.raises(ValueError, match="Unknown format"):
        render_findings(reports, "xml")


def test_composition_table_is_still_valid_yaml(build_deploy: Workflow) -> None:
    result = compose(build_deploy, [matrix_test(), staged_rollout()])

    text = render_composition(result, "table")
    data = yaml.safe_load(text)

    assert text.startswith("# applied patterns: matrix-test, staged-rollout\n")
    assert "# protected environment: production" in text
    assert list(data["jobs"]) == ["build", "deploy", "test-18", "test-22", "deploy-staging", "deploy-production"]


def test_composition_json(build_deploy: Workflow) -> None:
    result = compose(build_deploy, [matrix_test()])

    data = json.loads(render_composition(result, "json"))

    assert data["applied"] == ["matrix-test"]
    assert data["added_jobs"] == ["test-18", "test-22"]
    assert data["jobs"] == ["build", "deploy", "test-18", "test-22"]
    assert yaml.safe_load(data["workflow"])["jobs"]["deploy"]["needs"] == "build"


def test_composition_summary_without_workflow(build_deploy: Workflow) -> None:
    text = render_composition(compose(build_deploy, []), "table", include_workflow=False)

    assert text == "# applied patterns: -\n# added jobs: -\n# replaced jobs: -\n# added needs: -\n"
