"""Composite patterns: reusable bundles of jobs, edges and steps.

A pattern file is YAML::

    pattern: lint-gate
    description: Run lint before deploying
    overrides: []            # job ids this pattern may replace
    jobs:                    # workflow `jobs:` syntax
      lint: {...}
    needs:                   # extra edges, unioned into existing `needs`
      deploy: [lint]
    steps:                   # steps added to existing jobs
      - job: "*"             # a job id, or "*" for every steps-job
        position: after-checkout   # start | end | after-checkout
        steps: [...]
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from github_workflow_toolkit.document.errors import MalformedDocument
from github_workflow_toolkit.document.location import Location
from github_workflow_toolkit.document.model import Job, Step
from github_workflow_toolkit.document.parser import load_yaml, parse_jobs, parse_steps

logger = logging.getLogger(__name__)

STEP_POSITIONS = frozenset({"start", "end", "after-checkout"})
ALL_JOBS = "*"
PATTERN_KEYS = frozenset({"pattern", "description", "overrides", "jobs", "needs", "steps"})
PATTERN_SUFFIXES = (".yml", ".yaml")


@dataclass(frozen=True, slots=True)
class StepContribution:
    job: str
    steps: tuple[Step, ...]
    position: str = "end"


@dataclass(frozen=True, slots=True)
class Pattern:
    name: str
    description: str = ""
    jobs: tuple[Job, ...] = ()
    overrides: frozenset[str] = frozenset()
    needs: dict[str, tuple[str, ...]] = field(default_factory=dict)
    steps: tuple[StepContribution, ...] = ()
    source: str | None = None


class UnknownPattern(KeyError):
    """Raised when a pattern name is neither built in nor discovered."""

    def __str__(self) -> str:
        return f"Unknown pattern: {self.args[0]!r}"


def _fail(message: str, source: str | None, field_name: str | None = None) -> MalformedDocument:
    return MalformedDocument(message, Location(field=field_name, source=source))


def _string_tuple(value: object, source: str | None, field_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return tuple(value)
    raise _fail(f"{field_name} must be a string or a list of strings", source, field_name)


def parse_pattern(text: str, *, source: str | None = None) -> Pattern:
    data = load_yaml(text, source=source)
    if not isinstance(data, dict):
        raise _fail("pattern document must be a mapping", source)
    for key in data:
        if key not in PATTERN_KEYS:
            raise _fail(f"Unknown pattern key {key!r} (allowed: {', '.join(sorted(PATTERN_KEYS))})", source, str(key))

    name = data.get("pattern")
    if not isinstance(name, str) or not name.strip():
        raise _fail("pattern requires a non-empty 'pattern' name", source, "pattern")

    jobs: tuple[Job, ...] = ()
    if data.get("jobs") is not None:
        jobs = parse_jobs(data["jobs"], source, data)

    needs_raw = data.get("needs") or {}
    if not isinstance(needs_raw, dict):
        raise _fail("needs must be a mapping of job id to job ids", source, "needs")
    needs = {
        str(job_id): _string_tuple(deps, source, f"needs.{job_id}") for job_id, deps in needs_raw.items()
    }

    contributions: list[StepContribution] = []
    steps_raw = data.get("steps") or []
    if not isinstance(steps_raw, list):
        raise _fail("steps must be a list of step contributions", source, "steps")
    for index, entry in enumerate(steps_raw):
        field_name = f"steps[{index}]"
        if not isinstance(entry, dict) or not isinstance(entry.get("job"), str):
            raise _fail("step contribution requires a 'job'", source, field_name)
        unknown = set(entry) - {"job", "position", "steps"}
        if unknown:
            raise _fail(f"Unknown step contribution keys: {', '.join(sorted(map(str, unknown)))}", source, field_name)
        position = entry.get("position", "end")
        if not isinstance(position, str) or position not in STEP_POSITIONS:
            raise _fail(
                f"position must be one of {', '.join(sorted(STEP_POSITIONS))}, got {position!r}",
                source,
                f"{field_name}.position",
            )
        contributions.append(
            StepContribution(
                job=entry["job"],
                steps=parse_steps(entry.get("steps"), source=source, field=f"{field_name}.steps"),
                position=position,
            )
        )

    description = data.get("description")
    return Pattern(
        name=name.strip(),
        description="" if description is None else str(description),
        jobs=jobs,
        overrides=frozenset(_string_tuple(data.get("overrides"), source, "overrides")),
        needs=needs,
        steps=tuple(contributions),
        source=source,
    )


def load_pattern(path: Path) -> Pattern:
    return parse_pattern(path.read_text(encoding="utf-8"), source=str(path))


def discover_pattern_files(directories: Iterable[Path]) -> list[Path]:
    """Pattern files in the given directories, in a stable order."""

    found: list[Path] = []
    for directory in directories:
        if not directory.is_dir():
            logger.warning("Pattern directory does not exist", extra={"path": str(directory)})
            continue
        found.extend(
            sorted(p for p in directory.iterdir() if p.is_file() and p.suffix in PATTERN_SUFFIXES)
        )
    return found


class PatternRegistry:
    """Named patterns: the built-in library plus any discovered pattern files."""

    def __init__(self, patterns: Iterable[Pattern] = ()) -> None:
        self._patterns: dict[str, Pattern] = {}
        for pattern in patterns:
            self.register(pattern)

    @classmethod
    def default(cls, pattern_dirs: Iterable[Path] = ()) -> PatternRegistry:
        from .library import builtin_patterns

        registry = cls(builtin_patterns())
        for path in discover_pattern_files(pattern_dirs):
            registry.register(load_pattern(path))
        return registry

    def register(self, pattern: Pattern) -> None:
        if pattern.name in self._patterns:
            logger.info(
                "Pattern replaced",
                extra={"pattern": pattern.name, "source": pattern.source or "<builtin>"},
            )
        self._patterns[pattern.name] = pattern

    def get(self, name: str) -> Pattern:
        try:
            return self._patterns[name]
        except KeyError:
            raise UnknownPattern(name) from None

    def resolve(self, spec: str) -> Pattern:
        """Resolve a pattern name, or load a pattern file when given a path."""

        path = Path(spec)
        if path.suffix in PATTERN_SUFFIXES and path.is_file():
            return load_pattern(path)
        return self.get(spec)

    @property
    def names(self) -> list[str]:
        return sorted(self._patterns)

    def __iter__(self) -> Iterator[Pattern]:
        return (self._patterns[name] for name in self.names)

    def __len__(self) -> int:
        return len(self._patterns)
