"""Pydantic models for machine-readable reports."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class LocationModel(BaseModel):
    path: str
    job: str | None = None
    step_index: int | None = None
    field: str | None = None
    line: int | None = None
    column: int | None = None


class FindingModel(BaseModel):
    rule_id: str
    severity: Literal["warn", "fail"]
    message: str
    location: LocationModel


class ErrorModel(BaseModel):
    kind: str
    message: str
    location: LocationModel | None = None


class FileReportModel(BaseModel):
    path: str
    error: ErrorModel | None = None
    findings: list[FindingModel] = Field(default_factory=list)


class SummaryModel(BaseModel):
    files: int = 0
    errors: int = 0
    fail: int = 0
    warn: int = 0


class LintReportModel(BaseModel):
    summary: SummaryModel
    files: list[FileReportModel] = Field(default_factory=list)


class ProtectedEnvironmentModel(BaseModel):
    job: str
    environment: str
    protection_rules: list[str]


class CompositionModel(BaseModel):
    applied: list[str]
    added_jobs: list[str] = Field(default_factory=list)
    replaced_jobs: list[str] = Field(default_factory=list)
    added_edges: list[tuple[str, str]] = Field(default_factory=list)
    protected_environments: list[ProtectedEnvironmentModel] = Field(default_factory=list)
    jobs: list[str]
    workflow: str
