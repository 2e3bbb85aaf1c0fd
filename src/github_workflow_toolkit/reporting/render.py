"""Render findings and composition results as text.

Every function here is pure: it returns the rendered text and leaves writing
it anywhere to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from github_workflow_toolkit.composer.compose import CompositionResult
from github_workflow_toolkit.document.errors import MalformedDocument, WorkflowToolkitError
from github_workflow_toolkit.document.location import Location
from github_workflow_toolkit.document.serializer import serialize_workflow
from github_workflow_toolkit.rules.findings import Finding, Severity

from .models import (
    CompositionModel,
    ErrorModel,
    FileReportModel,
    FindingModel,
    LintReportModel,
    LocationModel,
    ProtectedEnvironmentModel,
    SummaryModel,
)

FINDING_FORMATS = ("table", "json", "github")
COMPOSITION_FORMATS = ("table", "json")


@dataclass(frozen=True, slots=True)
class FileReport:
    """Outcome of linting one file: its findings, or the error that stopped it."""

    path: str
    findings: tuple[Finding, ...] = ()
    error: WorkflowToolkitError | None = None

    @property
    def worst(self) -> Severity | None:
        if not self.findings:
            return None
        return max((finding.severity for finding in self.findings), key=lambda s: s.rank)


def summarize(reports: Iterable[FileReport]) -> SummaryModel:
    summary = SummaryModel()
    for report in reports:
        summary.files += 1
        if report.error is not None:
            summary.errors += 1
        for finding in report.findings:
            if finding.severity is Severity.FAIL:
                summary.fail += 1
            else:
                summary.warn += 1
    return summary


def _location_model(location: Location) -> LocationModel:
    return LocationModel(
        path=location.path,
        job=location.job,
        step_index=location.step_index,
        field=location.field,
        line=location.line,
        column=location.column,
    )


def _error_model(error: WorkflowToolkitError) -> ErrorModel:
    if isinstance(error, MalformedDocument):
        return ErrorModel(
            kind=type(error).__name__,
            message=error.message,
            location=_location_model(error.location),
        )
    return ErrorModel(kind=type(error).__name__, message=str(error))


def lint_report_model(reports: Sequence[FileReport]) -> LintReportModel:
    return LintReportModel(
        summary=summarize(reports),
        files=[
            FileReportModel(
                path=report.path,
                error=None if report.error is None else _error_model(report.error),
                findings=[
                    FindingModel(
                        rule_id=finding.rule_id,
                        severity=finding.severity.value,
                        message=finding.message,
                        location=_location_model(finding.location),
                    )
                    for finding in report.findings
                ],
            )
            for report in reports
        ],
    )


def _position(location: Location) -> str:
    if location.line is None:
        return "-"
    if location.column is None:
        return str(location.line)
    return f"{location.line}:{location.column}"


def _summary_line(summary: SummaryModel) -> str:
    noun = "file" if summary.files == 1 else "files"
    text = f"{summary.files} {noun} checked: {summary.fail} fail, {summary.warn} warn"
    if summary.errors:
        text += f", {summary.errors} unreadable"
    return text


def _render_table(reports: Sequence[FileReport]) -> str:
    lines: list[str] = []
    for report in reports:
        if report.error is None and not report.findings:
            continue
        lines.append(report.path)
        if report.error is not None:
            lines.append(f"  ERROR  {report.error}")
        rows = [
            (
                finding.severity.value.upper(),
                finding.rule_id,
                _position(finding.location),
                finding.location.path,
                finding.message,
            )
            for finding in report.findings
        ]
        if rows:
            widths = [max(len(row[column]) for row in rows) for column in range(4)]
            for row in rows:
                cells = [cell.ljust(width) for cell, width in zip(row, widths, strict=False)]
                lines.append("  " + "  ".join([*cells, row[4]]))
        lines.append("")
    lines.append(_summary_line(summarize(reports)))
    return "\n".join(lines) + "\n"


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_data(value).replace(":", "%3A").replace(",", "%2C")


def _annotation(level: str, path: str, location: Location | None, title: str, message: str) -> str:
    properties = [f"file={_escape_property(path)}"]
    if location is not None and location.line is not None:
        properties.append(f"line={location.line}")
        if location.column is not None:
            properties.append(f"col={location.column}")
    properties.append(f"title={_escape_property(title)}")
    return f"::{level} {','.join(properties)}::{_escape_data(message)}"


def _render_github(reports: Sequence[FileReport]) -> str:
    lines: list[str] = []
    for report in reports:
        if report.error is not None:
            location = report.error.location if isinstance(report.error, MalformedDocument) else None
            message = report.error.message if isinstance(report.error, MalformedDocument) else str(report.error)
            lines.append(_annotation("error", report.path, location, type(report.error).__name__, message))
        for finding in report.findings:
            level = "error" if finding.severity is Severity.FAIL else "warning"
            message = f"{finding.message} ({finding.location.path})"
            lines.append(_annotation(level, report.path, finding.location, finding.rule_id, message))
    return "".join(line + "\n" for line in lines)


def render_findings(reports: Sequence[FileReport], fmt: str = "table") -> str:
    """Render lint reports as a table, a JSON document or GitHub annotations."""

    if fmt == "table":
        return _render_table(reports)
    if fmt == "json":
        return lint_report_model(reports).model_dump_json(indent=2) + "\n"
    if fmt == "github":
        return _render_github(reports)
    raise ValueError(f"Unknown format {fmt!r} (expected one of: {', '.join(FINDING_FORMATS)})")


def composition_model(result: CompositionResult) -> CompositionModel:
    return CompositionModel(
        applied=list(result.applied),
        added_jobs=list(result.added_jobs),
        replaced_jobs=list(result.replaced_jobs),
        added_edges=[tuple(edge) for edge in result.added_edges],
        protected_environments=[
            ProtectedEnvironmentModel(
                job=job_id,
                environment=environment.name,
                protection_rules=list(environment.protection_rules),
            )
            for job_id, environment in result.protected_environments
        ],
        jobs=list(result.workflow.job_ids),
        workflow=serialize_workflow(result.workflow),
    )


def _composition_summary(result: CompositionResult) -> list[str]:
    def listed(values: Iterable[str]) -> str:
        return ", ".join(values) or "-"

    lines = [
        f"applied patterns: {listed(result.applied)}",
        f"added jobs: {listed(result.added_jobs)}",
        f"replaced jobs: {listed(result.replaced_jobs)}",
        f"added needs: {listed(f'{job} -> {dependency}' for job, dependency in result.added_edges)}",
    ]
    for job_id, environment in result.protected_environments:
        rules = ", ".join(environment.protection_rules)
        lines.append(
            f"protected environment: {environment.name} (job {job_id}); configure in repository settings: {rules}"
        )
    return lines


def render_composition(result: CompositionResult, fmt: str = "table", *, include_workflow: bool = True) -> str:
    """Render a composition summary, optionally followed by the composed YAML.

    In `table` form the summary lines are YAML comments, so the whole output is
    still a loadable workflow.
    """

    if fmt == "json":
        return composition_model(result).model_dump_json(indent=2) + "\n"
    if fmt != "table":
        raise ValueError(f"Unknown format {fmt!r} (expected one of: {', '.join(COMPOSITION_FORMATS)})")

    text = "".join(f"# {line}\n" for line in _composition_summary(result))
    if include_workflow:
        text += serialize_workflow(result.workflow)
    return text
