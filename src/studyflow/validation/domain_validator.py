"""Domain-level validation rules for tasks and imported events."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from studyflow.models import DIFFICULTY_LABELS, PRIORITIES

from .errors import ValidationReport


def validate_domain_inputs(loaded_payload: dict[str, Any]) -> ValidationReport:
    """Validate cross-record coherence and non-schema rules."""
    report = ValidationReport()

    tasks_payload = loaded_payload.get("tasks", {})
    tasks = tasks_payload.get("tasks", []) if isinstance(tasks_payload, dict) else []
    task_ids: set[str] = set()
    for idx, task in enumerate(tasks):
        if not isinstance(task, dict):
            continue
        path = f"$.tasks.tasks[{idx}]"
        task_id = task.get("task_id", task.get("id"))
        if isinstance(task_id, str):
            if task_id in task_ids:
                report.add_error(
                    code="DUPLICATE_TASK_ID",
                    message=f"Duplicate task_id: {task_id}",
                    field_path=f"{path}.task_id",
                )
            task_ids.add(task_id)
        validate_task_fields(task, path, report)

    events_payload = loaded_payload.get("events", {})
    events = events_payload.get("events", []) if isinstance(events_payload, dict) else []
    for idx, event in enumerate(events):
        if not isinstance(event, dict):
            continue
        _validate_event_window(event, f"$.events.events[{idx}]", report)

    return report


def validate_task_fields(task: dict[str, Any], path: str, report: ValidationReport) -> None:
    raw_due = task.get("due_date")
    if raw_due is not None and _parse_datetime(raw_due) is None:
        report.add_error(
            code="INVALID_DUE_DATE",
            message=f"Unparsable due_date: {raw_due!r}",
            field_path=f"{path}.due_date",
            suggested_fix="Use an ISO-8601 date or date-time, e.g. 2026-01-05T18:00:00Z.",
        )

    estimated = task.get("estimated_minutes", task.get("estimated_time"))
    if not isinstance(estimated, int) or isinstance(estimated, bool) or estimated <= 0:
        report.add_error(
            code="INVALID_ESTIMATED_TIME",
            message="estimated_minutes must be a positive integer",
            field_path=f"{path}.estimated_minutes",
        )

    difficulty = task.get("difficulty")
    if difficulty is not None:
        if isinstance(difficulty, str):
            valid = difficulty in DIFFICULTY_LABELS
        else:
            valid = isinstance(difficulty, int) and not isinstance(difficulty, bool) and 1 <= difficulty <= 5
        if not valid:
            report.add_error(
                code="INVALID_DIFFICULTY",
                message="difficulty must be an integer in 1..5 or one of easy|medium|hard",
                field_path=f"{path}.difficulty",
            )

    priority = task.get("priority", "medium")
    if priority not in PRIORITIES:
        report.add_error(
            code="INVALID_PRIORITY",
            message=f"priority must be one of {', '.join(PRIORITIES)}",
            field_path=f"{path}.priority",
        )


def _validate_event_window(event: dict[str, Any], path: str, report: ValidationReport) -> None:
    start = _parse_datetime(event.get("start_time"))
    end = _parse_datetime(event.get("end_time"))
    if start is None or end is None:
        report.add_error(
            code="INVALID_DATE_FORMAT",
            message="start_time and end_time must be ISO-8601 date-times",
            field_path=path,
        )
        return
    if start.tzinfo is None or end.tzinfo is None:
        # Mixed naive/aware pairs compare on wall-clock time.
        start = start.replace(tzinfo=None)
        end = end.replace(tzinfo=None)
    if end <= start:
        report.add_error(
            code="INVALID_EVENT_WINDOW",
            message="end_time must be after start_time",
            field_path=f"{path}.end_time",
        )


def _parse_datetime(raw: Any) -> datetime | None:
    if not isinstance(raw, str):
        return None
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
