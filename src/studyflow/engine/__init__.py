"""Planning engine."""

from .allocator import allocate_week
from .conflicts import ConflictChecker, has_conflict
from .replan import UnknownSessionError, adjust_for_missed, complete_session
from .runner import generate_weekly_plan, run_planner
from .scoring import DEFAULT_SCORE_WEIGHTS, compute_score
from .slot_builder import build_week_slots, week_start_for

__all__ = [
    "DEFAULT_SCORE_WEIGHTS",
    "ConflictChecker",
    "UnknownSessionError",
    "adjust_for_missed",
    "allocate_week",
    "build_week_slots",
    "complete_session",
    "compute_score",
    "generate_weekly_plan",
    "has_conflict",
    "run_planner",
    "week_start_for",
]
