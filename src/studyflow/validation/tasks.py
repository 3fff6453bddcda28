"""Task-creation boundary: validate a raw payload and build a Task."""

from __future__ import annotations

from datetime import timezone, tzinfo
from typing import Any

from studyflow.models import Task

from .domain_validator import validate_task_fields
from .errors import TaskValidationError, ValidationReport


def validate_task_payload(payload: dict[str, Any], *, path: str = "$.task") -> ValidationReport:
    report = ValidationReport()
    if not isinstance(payload, dict):
        report.add_error(code="INVALID_TYPE", message="Task payload must be an object", field_path=path)
        return report

    task_id = payload.get("task_id", payload.get("id"))
    if not isinstance(task_id, str) or not task_id.strip():
        report.add_error(
            code="MISSING_REQUIRED_FIELD",
            message="task_id must be a non-empty string",
            field_path=f"{path}.task_id",
        )
    title = payload.get("title")
    if not isinstance(title, str) or not title.strip():
        report.add_error(
            code="MISSING_REQUIRED_FIELD",
            message="title must be a non-empty string",
            field_path=f"{path}.title",
        )

    validate_task_fields(payload, path, report)
    return report


def build_task(payload: dict[str, Any], *, tz: tzinfo = timezone.utc) -> Task:
    """Validate ``payload`` and return a Task, raising TaskValidationError if invalid."""
    report = validate_task_payload(payload)
    if report.errors:
        raise TaskValidationError(report)
    return Task.from_dict(payload, tz=tz)
