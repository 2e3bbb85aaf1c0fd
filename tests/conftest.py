"""Test configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from github_workflow_toolkit.document.model import Workflow
from github_workflow_toolkit.document.parser import parse_workflow

CHECKOUT_SHA = "b4ffde65f46336ab88eb53be808477a3936bae11"

CLEAN_WORKFLOW = f"""\
name: CI
on:
  push:
    branches: [main]
  pull_request:
permissions:
  contents: read
concurrency:
  group: ${{{{ github.workflow }}}}-${{{{ github.ref }}}}
  cancel-in-progress: true
jobs:
  build:
    runs-on: ubuntu-latest
    timeout-minutes: 10
    steps:
      - uses: actions/checkout@{CHECKOUT_SHA}
      - name: Build
        run: npm ci
"""

BUILD_DEPLOY_WORKFLOW = """\
name: Release
on:
  push:
    branches: [main]
jobs:
  build:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
      - run: make build
  deploy:
    runs-on: ubuntu-latest
    needs: build
    steps:
      - run: make deploy
"""


@pytest.fixture
def clean_workflow_text() -> str:
    """A workflow that passes every default rule."""
    return CLEAN_WORKFLOW


@pytest.fixture
def clean_workflow() -> Workflow:
    return parse_workflow(CLEAN_WORKFLOW, source="ci.yml")


@pytest.fixture
def build_deploy_text() -> str:
    """Two jobs, `deploy` needs `build`, with a handful of lint findings."""
    return BUILD_DEPLOY_WORKFLOW


@pytest.fixture
def build_deploy() -> Workflow:
    return parse_workflow(BUILD_DEPLOY_WORKFLOW, source="release.yml")


@pytest.fixture
def workflow_dir(tmp_path: Path) -> Path:
    """A `.github/workflows` directory with one clean and one noisy workflow."""
    directory = tmp_path / ".github" / "workflows"
    directory.mkdir(parents=True)
    (directory / "ci.yml").write_text(CLEAN_WORKFLOW, encoding="utf-8")
    (directory / "release.yaml").write_text(BUILD_DEPLOY_WORKFLOW, encoding="utf-8")
    (directory / "README.md").write_text("not a workflow\n", encoding="utf-8")
    return directory


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's environment and .env out of the tests."""
    for name in (
        "LOG_LEVEL",
        "WORKFLOW_TOOLKIT_FORMAT",
        "WORKFLOW_TOOLKIT_FAIL_ON",
        "WORKFLOW_TOOLKIT_MAX_WORKERS",
        "WORKFLOW_TOOLKIT_DISABLED_RULES",
        "WORKFLOW_TOOLKIT_PATTERN_DIRS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
