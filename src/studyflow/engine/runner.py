"""Planning engine runner."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from studyflow.models import Task, WeeklyPlan
from studyflow.normalization.config_resolver import PlannerConfig
from studyflow.reporting.decision_trace import DecisionTraceCollector
from studyflow.reporting.warnings import build_warnings_and_suggestions

from .allocator import allocate_week
from .conflicts import ConflictChecker
from .slot_builder import build_week_slots, week_start_for

if TYPE_CHECKING:
    from studyflow.repository import EventSource


def run_planner(
    tasks: list[Task],
    *,
    now: datetime,
    event_source: EventSource | None = None,
    config: PlannerConfig | None = None,
) -> dict[str, Any]:
    """Generate the plan for ``now``'s week with warnings and a decision trace."""
    cfg = config or PlannerConfig()
    if now.tzinfo is None:
        now = now.replace(tzinfo=cfg.tz)
    local_now = now.astimezone(cfg.tz)
    week_start = week_start_for(local_now)

    slots = build_week_slots(
        week_start=week_start,
        days=cfg.days_per_week,
        first_hour=cfg.first_slot_hour,
        last_hour=cfg.last_slot_hour,
        step_minutes=cfg.slot_step_minutes,
        tz=cfg.tz,
    )
    window_start = datetime.combine(week_start, datetime.min.time(), tzinfo=cfg.tz)
    checker = ConflictChecker(
        event_source,
        window_start=window_start,
        window_end=window_start + timedelta(days=cfg.event_window_days),
    )

    decision_trace = DecisionTraceCollector(start_timestamp=now.astimezone(timezone.utc))
    plan = allocate_week(
        tasks=tasks,
        slots=slots,
        week_start=week_start,
        conflict_checker=checker,
        now=local_now,
        config=cfg,
        decision_trace=decision_trace,
    )
    warnings, suggestions = build_warnings_and_suggestions(plan=plan, tasks=tasks, now=local_now)
    plan.warnings = warnings

    return {
        "plan": plan,
        "suggestions": suggestions,
        "decision_trace": decision_trace.as_list(),
        "slots_count": len(slots),
    }


def generate_weekly_plan(
    tasks: list[Task],
    *,
    now: datetime,
    event_source: EventSource | None = None,
    config: PlannerConfig | None = None,
) -> WeeklyPlan:
    return run_planner(tasks, now=now, event_source=event_source, config=config)["plan"]
