"""Workflow document model: parse, traverse, build and serialize."""

from github_workflow_toolkit.document.builder import WorkflowBuilder
from github_workflow_toolkit.document.errors import (
    CompositionConflict,
    CyclicDependency,
    MalformedDocument,
    WorkflowToolkitError,
)
from github_workflow_toolkit.document.location import Location
from github_workflow_toolkit.document.model import (
    AccessLevel,
    ActionRef,
    ActionRefKind,
    ActionStep,
    CompositeAction,
    Concurrency,
    Environment,
    Job,
    Matrix,
    PermissionScope,
    Permissions,
    RunStep,
    Step,
    TriggerKind,
    Workflow,
)
from github_workflow_toolkit.document.parser import (
    load_workflow,
    parse_composite_action,
    parse_document,
    parse_workflow,
)
from github_workflow_toolkit.document.serializer import serialize_workflow, workflow_to_dict

__all__ = [
    "AccessLevel",
    "ActionRef",
    "ActionRefKind",
    "ActionStep",
    "CompositeAction",
    "CompositionConflict",
    "Concurrency",
    "CyclicDependency",
    "Environment",
    "Job",
    "Location",
    "MalformedDocument",
    "Matrix",
    "PermissionScope",
    "Permissions",
    "RunStep",
    "Step",
    "TriggerKind",
    "Workflow",
    "WorkflowBuilder",
    "WorkflowToolkitError",
    "load_workflow",
    "parse_composite_action",
    "parse_document",
    "parse_workflow",
    "serialize_workflow",
    "workflow_to_dict",
]
