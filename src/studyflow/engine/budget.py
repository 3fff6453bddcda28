"""Weekly time budget formulas per subject."""

from __future__ import annotations

import math
from collections import defaultdict

from studyflow.models import Task


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def distribute_study_time(
    tasks: list[Task],
    scores: dict[str, float],
    total_minutes: int,
) -> dict[str, int]:
    """Split ``total_minutes`` across subjects proportionally to score sums.

    Formula:
    - subject_budget = round(total_minutes * subject_score_sum / all_scores_sum)

    Subjects keep first-seen order. Completed tasks are ignored.
    """

    subject_scores: dict[str, float] = {}
    for task in tasks:
        if task.completed:
            continue
        subject = task.subject_label
        subject_scores[subject] = subject_scores.get(subject, 0.0) + scores[task.task_id]

    total_score = sum(subject_scores.values())
    if total_score <= 0:
        return {subject: 0 for subject in subject_scores}

    return {
        subject: round_half_up(total_minutes * score / total_score)
        for subject, score in subject_scores.items()
    }


def compute_subject_demand(tasks: list[Task]) -> dict[str, int]:
    """Sum estimated minutes of incomplete tasks by subject."""
    demand: dict[str, int] = defaultdict(int)
    for task in tasks:
        if task.completed:
            continue
        demand[task.subject_label] += max(0, task.estimated_minutes)
    return dict(demand)


def compute_coverage(
    budget_by_subject: dict[str, int],
    demand_by_subject: dict[str, int],
    used_by_subject: dict[str, int],
) -> dict[str, float]:
    """Coverage = min(100, used / needed * 100), needed = min(budget, demand).

    A subject with nothing needed is fully covered.
    """
    coverage: dict[str, float] = {}
    for subject, budget in budget_by_subject.items():
        needed = min(budget, demand_by_subject.get(subject, budget))
        used = used_by_subject.get(subject, 0)
        coverage[subject] = min(100.0, used / needed * 100.0) if needed > 0 else 100.0
    return coverage
