"""Release actions: workflow decoding, reference pinning and release preparation."""

from .pinning import ActionGraph, DependencyCycleError, pin_action_references
from .release import ReleaseOutcome, prepare_release, release_branch_name
from .workflow import WorkflowSchemaError, parse_step_references

__all__ = [
    "ActionGraph",
    "DependencyCycleError",
    "ReleaseOutcome",
    "WorkflowSchemaError",
    "parse_step_references",
    "pin_action_references",
    "prepare_release",
    "release_branch_name",
]
