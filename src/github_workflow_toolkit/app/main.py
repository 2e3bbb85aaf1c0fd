"""CLI entrypoint for the workflow toolkit.

Exit codes:
- 0  success, no findings at or above the failure threshold
- 1  findings at or above the threshold, or an unexpected error
- 2  configuration or usage error
- 3  malformed workflow or pattern document (compose)
- 4  composition conflict or dependency cycle
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from github_workflow_toolkit import __version__
from github_workflow_toolkit.app.config import ToolkitSettings
from github_workflow_toolkit.app.logging import configure_logging
from github_workflow_toolkit.app.pipeline import (
    DEFAULT_WORKFLOW_DIR,
    discover_workflow_files,
    exceeds_threshold,
    lint_paths,
    lint_workflow,
)
from github_workflow_toolkit.composer.compose import compose
from github_workflow_toolkit.composer.patterns import PatternRegistry, UnknownPattern
from github_workflow_toolkit.document.errors import (
    CompositionConflict,
    CyclicDependency,
    MalformedDocument,
)
from github_workflow_toolkit.document.parser import load_workflow
from github_workflow_toolkit.document.serializer import serialize_workflow
from github_workflow_toolkit.reporting.render import (
    COMPOSITION_FORMATS,
    FINDING_FORMATS,
    render_composition,
    render_findings,
)
from github_workflow_toolkit.rules.engine import DEFAULT_RULES, RuleEngine, UnknownRule

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_USAGE = 2
EXIT_MALFORMED = 3
EXIT_COMPOSITION = 4

FAIL_ON_CHOICES = ("fail", "warn", "never")


def _add_pattern_dir_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--pattern-dir",
        dest="pattern_dirs",
        action="append",
        type=Path,
        default=[],
        metavar="DIR",
        help="Directory with extra pattern files (repeatable)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-toolkit",
        description="Lint and compose GitHub Actions workflows",
    )
    parser.add_argument(
        "--version", action="version", version=f"github-workflow-toolkit {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    lint = subparsers.add_parser("lint", help="Check workflow files against the rule set")
    lint.add_argument(
        "paths",
        nargs="*",
        type=Path,
        metavar="PATH",
        help=f"Workflow files or directories (default: {DEFAULT_WORKFLOW_DIR.as_posix()})",
    )
    lint.add_argument("--format", choices=FINDING_FORMATS, default=None, help="Report format")
    lint.add_argument(
        "--fail-on",
        choices=FAIL_ON_CHOICES,
        default=None,
        help="Lowest severity that makes the command exit 1",
    )
    lint.add_argument(
        "--disable",
        action="append",
        default=[],
        metavar="RULE",
        help="Rule id to skip (repeatable)",
    )
    lint.add_argument("--workers", type=int, default=None, help="Files linted in parallel")

    compose_cmd = subparsers.add_parser(
        "compose", help="Merge patterns into a base workflow and print the result"
    )
    compose_cmd.add_argument("base", type=Path, help="Base workflow file")
    compose_cmd.add_argument(
        "--pattern",
        dest="patterns",
        action="append",
        default=[],
        metavar="NAME|FILE",
        help="Pattern name or pattern file, applied in the order given (repeatable)",
    )
    _add_pattern_dir_argument(compose_cmd)
    compose_cmd.add_argument(
        "--output", "-o", type=Path, default=None, help="Write the composed workflow here"
    )
    compose_cmd.add_argument(
        "--lint", action="store_true", help="Lint the composed workflow (report on stderr)"
    )
    compose_cmd.add_argument("--format", choices=COMPOSITION_FORMATS, default=None, help="Output format")
    compose_cmd.add_argument(
        "--fail-on",
        choices=FAIL_ON_CHOICES,
        default=None,
        help="With --lint, lowest severity that makes the command exit 1",
    )

    patterns = subparsers.add_parser("patterns", help="List available patterns")
    _add_pattern_dir_argument(patterns)

    subparsers.add_parser("rules", help="List lint rules")

    return parser


def _run_lint(args: argparse.Namespace, settings: ToolkitSettings) -> int:
    engine = RuleEngine(disabled=[*settings.disabled_rules, *args.disable])

    if not args.paths and not DEFAULT_WORKFLOW_DIR.is_dir():
        print(f"No paths given and {DEFAULT_WORKFLOW_DIR.as_posix()} does not exist", file=sys.stderr)
        return EXIT_USAGE

    files = discover_workflow_files(args.paths)
    if not files:
        print("No workflow files found", file=sys.stderr)
        return EXIT_OK

    workers = args.workers if args.workers is not None else settings.max_workers
    if workers < 1:
        print("--workers must be at least 1", file=sys.stderr)
        return EXIT_USAGE

    reports = lint_paths(files, engine, max_workers=workers)
    print(render_findings(reports, args.format or settings.output_format), end="")

    fail_on = args.fail_on or settings.fail_on
    return EXIT_FINDINGS if exceeds_threshold(reports, fail_on) else EXIT_OK


def _composition_format(args: argparse.Namespace, settings: ToolkitSettings) -> str:
    if args.format is not None:
        return args.format
    return settings.output_format if settings.output_format in COMPOSITION_FORMATS else "table"


def _run_compose(args: argparse.Namespace, settings: ToolkitSettings) -> int:
    fmt = _composition_format(args, settings)
    registry = PatternRegistry.default([*settings.pattern_dirs, *args.pattern_dirs])

    base = load_workflow(args.base)
    patterns = [registry.resolve(spec) for spec in args.patterns]
    result = compose(base, patterns)

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(serialize_workflow(result.workflow), encoding="utf-8")
        logger.info("Composed workflow written", extra={"path": str(args.output)})
        print(render_composition(result, fmt, include_workflow=fmt == "json"), end="")
    else:
        print(render_composition(result, fmt), end="")

    if not args.lint:
        return EXIT_OK

    source = (args.output or args.base).as_posix()
    report = lint_workflow(result.workflow, RuleEngine(disabled=settings.disabled_rules), source=source)
    print(render_findings([report], fmt), end="", file=sys.stderr)

    fail_on = args.fail_on or settings.fail_on
    return EXIT_FINDINGS if exceeds_threshold([report], fail_on) else EXIT_OK


def _run_patterns(args: argparse.Namespace, settings: ToolkitSettings) -> int:
    registry = PatternRegistry.default([*settings.pattern_dirs, *args.pattern_dirs])
    width = max((len(name) for name in registry.names), default=0)
    for pattern in registry:
        origin = f"  [{pattern.source}]" if pattern.source else ""
        print(f"{pattern.name.ljust(width)}  {pattern.description}{origin}")
    return EXIT_OK


def _run_rules() -> int:
    width = max(len(rule.rule_id) for rule in DEFAULT_RULES)
    for rule in DEFAULT_RULES:
        print(f"{rule.rule_id.ljust(width)}  {rule.default_severity.value:<4}  {rule.description}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = ToolkitSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment and .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_USAGE

    configure_logging(settings.log_level)

    try:
        if args.command == "lint":
            return _run_lint(args, settings)

        if args.command == "compose":
            return _run_compose(args, settings)

        if args.command == "patterns":
            return _run_patterns(args, settings)

        if args.command == "rules":
            return _run_rules()

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_USAGE

    except (UnknownRule, UnknownPattern) as e:
        print(str(e), file=sys.stderr)
        return EXIT_USAGE

    except MalformedDocument as e:
        logger.warning("Malformed document", extra={"error": e.message, "where": e.location.path})
        print(str(e), file=sys.stderr)
        return EXIT_MALFORMED

    except (CompositionConflict, CyclicDependency) as e:
        logger.warning("Composition failed", extra={"error": str(e)})
        print(str(e), file=sys.stderr)
        return EXIT_COMPOSITION

    except FileNotFoundError as e:
        print(f"File not found: {e.filename}", file=sys.stderr)
        return EXIT_USAGE

    except Exception:
        logger.exception("Command failed")
        return EXIT_FINDINGS


if __name__ == "__main__":
    raise SystemExit(main())
