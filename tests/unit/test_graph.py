"""Unit tests for job dependency ordering and cycle detection."""

from __future__ import annotations

import pytest

from github_workflow_toolkit.document.errors import CyclicDependency
from github_workflow_toolkit.document.graph import find_cycle, topological_order, unknown_needs


def test_topological_order_respects_needs_and_declaration_order() -> None:
    edges = {"deploy": ("build", "test"), "lint": (), "build": (), "test": ("build",)}

    assert topological_order(edges) == ["lint", "build", "test", "deploy"]


def test_cycle_names_every_job_in_it() -> None:
    edges = {"build": ("deploy",), "test": ("build",), "deploy": ("test",), "docs": ()}

    with pytest.raises(CyclicDependency) as exc:
        topological_order(edges)

    assert exc.value.cycle == ("build", "deploy", "test")
    assert str(exc.value) == "Dependency cycle detected: build -> deploy -> test -> build"


def test_self_dependency_is_a_cycle() -> None:
    assert find_cycle({"a": ("a",)}) == ("a",)


def test_find_cycle_returns_none_for_a_dag() -> None:
    assert find_cycle({"a": (), "b": ("a",)}) is None


def test_unknown_needs() -> None:
    assert unknown_needs({"a": ("ghost",), "b": ("a",)}) == [("a", "ghost")]
