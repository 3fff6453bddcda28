"""Input normalization."""

from .config_resolver import (
    PlannerConfig,
    ReminderSettings,
    TimerSettings,
    resolve_planner_config,
    resolve_reminder_settings,
    resolve_timer_settings,
)
from .request import normalize_request

__all__ = [
    "PlannerConfig",
    "ReminderSettings",
    "TimerSettings",
    "normalize_request",
    "resolve_planner_config",
    "resolve_reminder_settings",
    "resolve_timer_settings",
]
