"""Shortcut module so `python -m github_workflow_toolkit.cli` runs the CLI.

The entrypoint is implemented in `github_workflow_toolkit.app.main`.
"""

from __future__ import annotations

from github_workflow_toolkit.app.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
