"""Decoder extracting ``uses`` references from action and workflow documents."""

from __future__ import annotations

from typing import Any

import yaml


class WorkflowSchemaError(ValueError):
    """Raised when an action or workflow document is malformed."""

    def __init__(self, source: str, reason: str) -> None:
        """Record the offending document and the reason it was rejected."""
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


def parse_step_references(document: str | bytes, *, source: str = "<document>") -> list[str]:
    """Return every ``uses`` value of ``document`` in document order.

    Composite actions contribute ``runs.steps[].uses``; workflows contribute
    ``jobs.<id>.uses`` and ``jobs.<id>.steps[].uses``.
    """
    try:
        data = yaml.safe_load(document)
    except yaml.YAMLError as exc:
        raise WorkflowSchemaError(source, f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise WorkflowSchemaError(source, "top level must be a mapping")

    references: list[str] = []
    runs = data.get("runs")
    if runs is not None:
        if not isinstance(runs, dict):
            raise WorkflowSchemaError(source, "'runs' must be a mapping")
        references.extend(_step_references(runs.get("steps"), source, "runs.steps"))

    jobs = data.get("jobs")
    if jobs is not None:
        if not isinstance(jobs, dict):
            raise WorkflowSchemaError(source, "'jobs' must be a mapping")
        for job_id, job in jobs.items():
            location = f"jobs.{job_id}"
            if not isinstance(job, dict):
                raise WorkflowSchemaError(source, f"'{location}' must be a mapping")
            if "uses" in job:
                references.append(_uses_value(job["uses"], source, f"{location}.uses"))
            references.extend(_step_references(job.get("steps"), source, f"{location}.steps"))
    return references


def _step_references(steps: Any, source: str, location: str) -> list[str]:
    if steps is None:
        return []
    if not isinstance(steps, list):
        raise WorkflowSchemaError(source, f"'{location}' must be a list")
    references: list[str] = []
    for index, step in enumerate(steps):
        if not isinstance(step, dict):
            raise WorkflowSchemaError(source, f"'{location}[{index}]' must be a mapping")
        if "uses" in step:
            references.append(_uses_value(step["uses"], source, f"{location}[{index}].uses"))
    return references


def _uses_value(value: Any, source: str, location: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise WorkflowSchemaError(source, f"'{location}' must be a non-empty string")
    return value.strip()


__all__ = ["WorkflowSchemaError", "parse_step_references"]
