"""Unit tests for deriving workflows with the builder."""

from __future__ import annotations

import pytest

from github_workflow_toolkit.document.builder import WorkflowBuilder
from github_workflow_toolkit.document.model import Job, RunStep, Workflow


def test_build_without_changes_is_equal(build_deploy: Workflow) -> None:
    assert WorkflowBuilder.from_workflow(build_deploy).build() == build_deploy


def test_added_jobs_are_appended_and_replaced_jobs_keep_their_slot(build_deploy: Workflow) -> None:
    builder = WorkflowBuilder.from_workflow(build_deploy)

    builder.add_job(Job(id="lint", runs_on=("ubuntu-latest",), steps=(RunStep(run="make lint"),)))
    builder.replace_job(Job(id="build", runs_on=("macos-latest",), steps=(RunStep(run="make"),)))
    workflow = builder.build()

    assert workflow.job_ids == ("build", "deploy", "lint")
    assert workflow.job("build").runs_on == ("macos-latest",)
    assert build_deploy.job("build").runs_on == ("ubuntu-latest",)


def test_add_job_rejects_duplicates_and_replace_requires_existing(build_deploy: Workflow) -> None:
    builder = WorkflowBuilder.from_workflow(build_deploy)

    with pytest.raises(KeyError):
        builder.add_job(build_deploy.job("build"))
    with pytest.raises(KeyError):
        builder.replace_job(Job(id="ghost", runs_on=("x",), steps=(RunStep(run="true"),)))


def test_add_needs_returns_only_new_edges(build_deploy: Workflow) -> None:
    builder = WorkflowBuilder.from_workflow(build_deploy)
    builder.add_job(Job(id="lint", runs_on=("x",), steps=(RunStep(run="true"),)))

    assert builder.add_needs("deploy", ["build", "lint", "lint"]) == ("lint",)
    assert builder.build().job("deploy").needs == ("build", "lint")


def test_add_steps_at_start_and_end(build_deploy: Workflow) -> None:
    builder = WorkflowBuilder.from_workflow(build_deploy)

    builder.add_steps("deploy", [RunStep(run="echo first")], position="start")
    builder.add_steps("deploy", [RunStep(run="echo last")])
    steps = builder.build().job("deploy").steps

    assert [step.run for step in steps] == ["echo first", "make deploy", "echo last"]
    with pytest.raises(ValueError, match="position"):
        builder.add_steps("deploy", [RunStep(run="x")], position="middle")
