"""Lint many workflow files.

Each file runs its own parse-and-check pipeline; one bad file never stops the
others. Files may be processed in parallel but results always come back
ordered by path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path

from github_workflow_toolkit.document.errors import MalformedDocument
from github_workflow_toolkit.document.location import Location
from github_workflow_toolkit.document.model import CompositeAction, Workflow
from github_workflow_toolkit.document.parser import parse_document
from github_workflow_toolkit.reporting.render import FileReport
from github_workflow_toolkit.rules.engine import RuleEngine
from github_workflow_toolkit.rules.findings import Severity

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_DIR = Path(".github") / "workflows"
WORKFLOW_SUFFIXES = (".yml", ".yaml")


def discover_workflow_files(paths: Sequence[Path] = ()) -> list[Path]:
    """Expand directories to the workflow files directly inside them.

    Files are kept as given (even if missing, so the report can say so). With
    no paths, `.github/workflows` is searched.
    """

    found: dict[Path, None] = {}
    for path in paths or (DEFAULT_WORKFLOW_DIR,):
        if path.is_dir():
            for child in sorted(path.iterdir()):
                if child.is_file() and child.suffix in WORKFLOW_SUFFIXES:
                    found.setdefault(child, None)
        else:
            found.setdefault(path, None)
    return list(found)


def lint_file(path: Path, engine: RuleEngine) -> FileReport:
    source = path.as_posix()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Cannot read file", extra={"path": source, "error": str(e)})
        return FileReport(path=source, error=MalformedDocument(f"cannot read file: {e}", Location(source=source)))

    try:
        document = parse_document(text, source=source)
    except MalformedDocument as e:
        logger.info("Malformed document", extra={"path": source, "error": e.message})
        return FileReport(path=source, error=e)

    if isinstance(document, CompositeAction):
        logger.debug("Composite action validated", extra={"path": source, "steps": len(document.steps)})
        return FileReport(path=source)

    return lint_workflow(document, engine, source=source)


def lint_workflow(workflow: Workflow, engine: RuleEngine, *, source: str) -> FileReport:
    """Lint an in-memory workflow, attributing findings to `source`."""

    findings = tuple(
        replace(finding, location=finding.location.with_source(source))
        for finding in engine.evaluate(workflow)
    )
    return FileReport(path=source, findings=findings)


def lint_paths(paths: Iterable[Path], engine: RuleEngine, *, max_workers: int = 4) -> list[FileReport]:
    """Lint every file, using up to `max_workers` threads, ordered by path."""

    files = sorted(set(paths), key=lambda p: p.as_posix())
    if not files:
        return []

    workers = max(1, min(max_workers, len(files)))
    logger.info("Linting workflow files", extra={"files": len(files), "workers": workers})
    if workers == 1:
        return [lint_file(path, engine) for path in files]

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(lambda path: lint_file(path, engine), files))


def exceeds_threshold(reports: Iterable[FileReport], fail_on: str) -> bool:
    """Whether the reports should fail the run.

    Unreadable or malformed files always count as failures unless `fail_on`
    is `never`.
    """

    if fail_on == "never":
        return False
    threshold = Severity(fail_on)
    for report in reports:
        if report.error is not None:
            return True
        worst = report.worst
        if worst is not None and worst.rank >= threshold.rank:
            return True
    return False
