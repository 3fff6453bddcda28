"""Plan metrics and study-log statistics."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from statistics import mean
from typing import Any, Iterable

from studyflow.models import Task, WeeklyPlan


def collect_metrics(plan: WeeklyPlan, tasks: list[Task]) -> dict[str, Any]:
    """Summarize a generated plan against the tasks it was built from."""
    minutes_by_day: dict[str, int] = defaultdict(int)
    minutes_by_subject: dict[str, int] = defaultdict(int)
    minutes_by_task: dict[str, int] = defaultdict(int)

    for session in plan.sessions:
        minutes_by_day[session.date.isoformat()] += session.duration_minutes
        minutes_by_subject[session.subject] += session.duration_minutes
        minutes_by_task[session.task_id] += session.duration_minutes

    incomplete = [task for task in tasks if not task.completed]
    unscheduled = sorted(task.task_id for task in incomplete if minutes_by_task.get(task.task_id, 0) == 0)
    fully_scheduled = [
        task.task_id
        for task in incomplete
        if minutes_by_task.get(task.task_id, 0) >= task.estimated_minutes
    ]

    return {
        "sessions_count": len(plan.sessions),
        "completed_sessions": sum(1 for session in plan.sessions if session.completed),
        "total_minutes": sum(minutes_by_day.values()),
        "minutes_by_day": dict(sorted(minutes_by_day.items())),
        "minutes_by_subject": dict(sorted(minutes_by_subject.items())),
        "minutes_by_task": dict(sorted(minutes_by_task.items())),
        "unscheduled_task_ids": unscheduled,
        "fully_scheduled_tasks": len(fully_scheduled),
        "mean_coverage": round(mean(plan.coverage.values()), 2) if plan.coverage else 100.0,
        "conflict_data_available": plan.conflict_data_available,
    }


def _entry_day(entry: dict[str, Any]) -> date:
    raw = entry.get("date")
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw)[:10])


def compute_study_stats(log_entries: Iterable[dict[str, Any]], today: date) -> dict[str, Any]:
    """Aggregate logged study time.

    Each entry carries ``date`` and ``minutes``. The streak counts consecutive
    days with study ending today; the week starts on Monday.
    """
    minutes_by_day: dict[date, int] = defaultdict(int)
    sessions_by_day: dict[date, int] = defaultdict(int)
    for entry in log_entries:
        day = _entry_day(entry)
        minutes = max(0, int(entry.get("minutes", 0) or 0))
        minutes_by_day[day] += minutes
        if minutes > 0:
            sessions_by_day[day] += 1

    streak = 0
    cursor = today
    while minutes_by_day.get(cursor, 0) > 0:
        streak += 1
        cursor -= timedelta(days=1)

    week_start = today - timedelta(days=today.weekday())
    weekly_minutes = sum(
        minutes for day, minutes in minutes_by_day.items() if week_start <= day <= today
    )

    return {
        "date": today.isoformat(),
        "total_study_minutes": minutes_by_day.get(today, 0),
        "sessions_count": sessions_by_day.get(today, 0),
        "streak_days": streak,
        "weekly_study_minutes": weekly_minutes,
        "week_start": week_start.isoformat(),
    }
