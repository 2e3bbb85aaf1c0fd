"""Source locations for parse errors and lint findings."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Location:
    """Where something lives in a workflow document.

    `job_index` is the job's declaration order (-1 for workflow scope) and
    `step_index` the step's position inside that job. `field` narrows the
    location to a key path below the job/step (e.g. ``with.key``), or names a
    top-level key path when `job` is None.
    """

    job: str | None = None
    job_index: int = -1
    step_index: int | None = None
    field: str | None = None
    line: int | None = None
    column: int | None = None
    source: str | None = None

    @property
    def path(self) -> str:
        parts: list[str] = []
        if self.job is not None:
            parts.append(f"jobs.{self.job}")
            if self.step_index is not None:
                parts[-1] += f".steps[{self.step_index}]"
        if self.field:
            parts.append(self.field)
        return ".".join(parts) if parts else "workflow"

    def sort_key(self) -> tuple[int, int, int, int]:
        step = -1 if self.step_index is None else self.step_index
        return (self.job_index, step, self.line or 0, self.column or 0)

    def describe(self) -> str:
        prefix = self.source or "<document>"
        if self.line is not None:
            prefix += f":{self.line}"
            if self.column is not None:
                prefix += f":{self.column}"
        return f"{prefix} ({self.path})"

    def with_source(self, source: str | None) -> Location:
        if source is None or self.source == source:
            return self
        return Location(
            job=self.job,
            job_index=self.job_index,
            step_index=self.step_index,
            field=self.field,
            line=self.line,
            column=self.column,
            source=source,
        )
