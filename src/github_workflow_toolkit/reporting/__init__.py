"""Render lint and composition results for people and tools."""

from github_workflow_toolkit.reporting.models import (
    CompositionModel,
    FileReportModel,
    FindingModel,
    LintReportModel,
    SummaryModel,
)
from github_workflow_toolkit.reporting.render import (
    COMPOSITION_FORMATS,
    FINDING_FORMATS,
    FileReport,
    render_composition,
    render_findings,
    summarize,
)

__all__ = [
    "COMPOSITION_FORMATS",
    "FINDING_FORMATS",
    "CompositionModel",
    "FileReport",
    "FileReportModel",
    "FindingModel",
    "LintReportModel",
    "SummaryModel",
    "render_composition",
    "render_findings",
    "summarize",
]
