"""Single-pass greedy allocation of weekly slots to tasks.

Phases:
1) subject budgets proportional to score sums,
2) chronological slot walk, highest-score eligible task first,
3) totals and coverage.

Rules preserved: a subject never receives more than its budget and a task
never receives more than its estimated minutes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable

from studyflow.models import Slot, StudySession, Task, WeeklyPlan
from studyflow.normalization.config_resolver import PlannerConfig
from studyflow.reporting.decision_trace import DecisionTraceCollector

from .budget import compute_coverage, compute_subject_demand, distribute_study_time
from .conflicts import ConflictChecker
from .scoring import compute_score, rank_tasks

logger = logging.getLogger(__name__)


def session_id_for(task_id: str, slot: Slot) -> str:
    return f"{task_id}-{slot.slot_id}"


def score_tasks(tasks: list[Task], now: datetime, config: PlannerConfig) -> dict[str, float]:
    return {
        task.task_id: compute_score(
            task,
            now,
            config.score_weights,
            default_difficulty=config.default_difficulty,
        )
        for task in tasks
    }


def allocate_week(
    *,
    tasks: list[Task],
    slots: Iterable[Slot],
    week_start: date,
    conflict_checker: ConflictChecker,
    now: datetime,
    config: PlannerConfig | None = None,
    decision_trace: DecisionTraceCollector | None = None,
) -> WeeklyPlan:
    """Turn tasks, slots and external conflicts into a WeeklyPlan.

    Never fails on valid input: with no incomplete tasks the plan is empty,
    and slots nobody can use are skipped.
    """

    cfg = config or PlannerConfig()
    incomplete = [task for task in tasks if not task.completed]
    if not incomplete:
        logger.info("No incomplete tasks, returning an empty plan for week %s", week_start)
        return WeeklyPlan(week_start=week_start)

    scores = score_tasks(incomplete, now, cfg)
    budget_by_subject = distribute_study_time(incomplete, scores, cfg.weekly_budget_minutes)
    demand_by_subject = compute_subject_demand(incomplete)
    ranked = rank_tasks(incomplete, scores)

    slot_minutes = cfg.slot_step_minutes
    session_cap = min(cfg.max_session_minutes, slot_minutes)
    subject_used: dict[str, int] = {subject: 0 for subject in budget_by_subject}
    task_used: dict[str, int] = {task.task_id: 0 for task in incomplete}
    sessions: list[StudySession] = []

    def _remaining_for(task: Task) -> tuple[int, int]:
        subject = task.subject_label
        return (
            budget_by_subject[subject] - subject_used[subject],
            task.estimated_minutes - task_used[task.task_id],
        )

    def _trace(
        slot: Slot,
        candidates: list[Task],
        selected: Task | None,
        rules: list[str],
        *,
        blocked_by_events: list[str] | None = None,
        minutes: int = 0,
        note: str = "",
    ) -> None:
        if decision_trace is None:
            return
        decision_trace.record(
            slot_id=slot.slot_id,
            candidate_tasks=[task.task_id for task in candidates],
            scores_by_task={task.task_id: scores[task.task_id] for task in candidates},
            selected_task_id=selected.task_id if selected else None,
            applied_rules=rules,
            blocked_by_events=blocked_by_events or [],
            minutes=minutes,
            note=note,
        )

    for slot in slots:
        if cfg.skip_past_slots and slot.start < now:
            _trace(slot, [], None, ["RULE_PAST_SLOT_SKIP"], note="Slot starts before now.")
            continue

        blocking = conflict_checker.conflicts(slot.start, slot_minutes)
        if blocking:
            _trace(
                slot,
                [],
                None,
                ["RULE_CONFLICT_SKIP"],
                blocked_by_events=[event.event_id for event in blocking],
                note="Slot overlaps an external event.",
            )
            continue

        candidates = [task for task in ranked if min(_remaining_for(task)) > 0]
        if not candidates:
            _trace(slot, [], None, ["RULE_NO_ELIGIBLE_TASK"], note="No task needs more time.")
            continue

        chosen = candidates[0]
        subject_left, task_left = _remaining_for(chosen)
        duration = min(session_cap, subject_left, task_left)
        if duration < cfg.min_session_minutes:
            _trace(
                slot,
                candidates,
                chosen,
                ["RULE_HIGHEST_SCORE_FIRST", "RULE_BELOW_MIN_SESSION"],
                minutes=duration,
                note="Remaining time below minimum session length; slot left free.",
            )
            continue

        sessions.append(
            StudySession(
                session_id=session_id_for(chosen.task_id, slot),
                task_id=chosen.task_id,
                date=slot.day,
                start_time=slot.start_time,
                duration_minutes=duration,
                subject=chosen.subject_label,
                title=chosen.title,
                priority=chosen.priority,
            )
        )
        subject_used[chosen.subject_label] += duration
        task_used[chosen.task_id] += duration
        _trace(slot, candidates, chosen, ["RULE_HIGHEST_SCORE_FIRST"], minutes=duration)

    total_minutes = sum(session.duration_minutes for session in sessions)
    logger.info(
        "Allocated %d sessions (%d minutes) across %d subjects for week %s",
        len(sessions),
        total_minutes,
        len(budget_by_subject),
        week_start,
    )

    return WeeklyPlan(
        week_start=week_start,
        sessions=sessions,
        total_hours=total_minutes / 60,
        coverage=compute_coverage(budget_by_subject, demand_by_subject, subject_used),
        budget_by_subject=budget_by_subject,
        conflict_data_available=conflict_checker.available,
    )
