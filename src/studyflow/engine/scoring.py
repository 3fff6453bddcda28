"""Task scoring and deterministic ranking for slot allocation."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

from studyflow.models import Task

DEFAULT_SCORE_WEIGHTS: dict[str, float] = {
    "w_priority": 2.0,
    "w_urgency": 3.0,
    "w_difficulty": 1.5,
}

DEFAULT_DIFFICULTY = 3

_PRIORITY_WEIGHTS = {"high": 3, "medium": 2, "low": 1}
_SECONDS_PER_DAY = 24 * 60 * 60


def priority_weight(priority: str) -> int:
    return _PRIORITY_WEIGHTS.get(priority, 1)


def urgency_weight(due_date: datetime | None, now: datetime) -> int:
    """Map time-to-due onto 1..5.

    Days are counted with a ceiling, so anything due later today or within
    the next 24 hours counts as one day away and a past due date as zero.
    Tasks without a due date get the lowest urgency.
    """
    if due_date is None:
        return 1

    days_until_due = math.ceil((due_date - now).total_seconds() / _SECONDS_PER_DAY)
    if days_until_due <= 0:
        return 5
    if days_until_due <= 1:
        return 4
    if days_until_due <= 3:
        return 3
    if days_until_due <= 7:
        return 2
    return 1


def difficulty_weight(difficulty: int | None, default: int = DEFAULT_DIFFICULTY) -> int:
    return difficulty or default


def compute_score(
    task: Task,
    now: datetime,
    weights: dict[str, float] | None = None,
    *,
    default_difficulty: int = DEFAULT_DIFFICULTY,
) -> float:
    """Compute the weighted study score; higher means study sooner."""

    w = DEFAULT_SCORE_WEIGHTS if weights is None else weights
    return (
        float(w.get("w_priority", 0.0)) * priority_weight(task.priority)
        + float(w.get("w_urgency", 0.0)) * urgency_weight(task.due_date, now)
        + float(w.get("w_difficulty", 0.0)) * difficulty_weight(task.difficulty, default_difficulty)
    )


def rank_tasks(
    tasks: Iterable[Task],
    scores: dict[str, float],
) -> list[Task]:
    """Order tasks by score descending.

    ``sorted`` is stable, so equal scores keep insertion order.
    """
    return sorted(tasks, key=lambda task: -scores[task.task_id])
