"""Warning and suggestion generation for planning output."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Any

from studyflow.models import Task, WeeklyPlan

# Subjects whose coverage falls below this percentage get a warning.
UNDER_COVERAGE_THRESHOLD = 100.0


def build_warnings_and_suggestions(
    *,
    plan: WeeklyPlan,
    tasks: list[Task],
    now: datetime,
    under_coverage_threshold: float = UNDER_COVERAGE_THRESHOLD,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Return (warnings, suggestions) describing gaps in a generated plan."""
    warnings: list[dict[str, Any]] = []
    suggestions: list[dict[str, Any]] = []

    # (1) Event source failed, the plan ignores external commitments.
    if not plan.conflict_data_available:
        warnings.append(
            {
                "code": "WARN_CONFLICT_DATA_UNAVAILABLE",
                "severity": "warning",
                "message": "Imported events could not be read; sessions may overlap calendar commitments.",
            }
        )
        suggestions.append(
            {
                "code": "SUGGEST_CHECK_CALENDAR_SOURCE",
                "message": "Check the calendar import and regenerate the plan.",
            }
        )

    # (2) Subjects that received less than they need.
    for subject, coverage in plan.coverage.items():
        if coverage < under_coverage_threshold:
            warnings.append(
                {
                    "code": "WARN_SUBJECT_UNDER_COVERED",
                    "severity": "warning",
                    "subject": subject,
                    "coverage": round(coverage, 2),
                    "message": f"{subject} is only {coverage:.0f}% covered this week.",
                }
            )
            suggestions.append(
                {
                    "code": "SUGGEST_INCREASE_DAILY_STUDY",
                    "subject": subject,
                    "message": "Raise daily study minutes or free calendar slots for this subject.",
                }
            )

    scheduled: dict[str, int] = defaultdict(int)
    for session in plan.sessions:
        scheduled[session.task_id] += session.duration_minutes

    for task in tasks:
        if task.completed:
            continue

        # (3) Incomplete tasks with no session at all.
        if scheduled.get(task.task_id, 0) == 0:
            warnings.append(
                {
                    "code": "WARN_TASK_UNSCHEDULED",
                    "severity": "warning",
                    "task_id": task.task_id,
                    "message": f"No study session was scheduled for {task.title!r}.",
                }
            )
            suggestions.append(
                {
                    "code": "SUGGEST_SPLIT_TASK",
                    "task_id": task.task_id,
                    "message": "Split the task or lower the minimum session length.",
                }
            )

        # (4) Due date already passed.
        if task.due_date is not None and task.due_date < now:
            warnings.append(
                {
                    "code": "WARN_OVERDUE_TASK",
                    "severity": "warning",
                    "task_id": task.task_id,
                    "due_date": task.due_date.isoformat(),
                    "message": f"{task.title!r} is past its due date.",
                }
            )
            suggestions.append(
                {
                    "code": "SUGGEST_UPDATE_DUE_DATE",
                    "task_id": task.task_id,
                    "message": "Update the due date or mark the task completed.",
                }
            )

    return warnings, suggestions
