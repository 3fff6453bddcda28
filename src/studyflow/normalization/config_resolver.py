"""Resolve effective planner configuration from layered inputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any

from studyflow.models import resolve_timezone
from studyflow.validation import ValidationReport

DEFAULT_PLANNER_CONFIG: dict[str, Any] = {
    "daily_study_minutes": 360,
    "days_per_week": 7,
    "first_slot_hour": 8,
    "last_slot_hour": 20,
    "slot_step_minutes": 120,
    "max_session_minutes": 120,
    "min_session_minutes": 30,
    "default_difficulty": 3,
    "event_window_days": 30,
    "skip_past_slots": False,
    "timezone": "UTC",
    "score_weights": {"w_priority": 2.0, "w_urgency": 3.0, "w_difficulty": 1.5},
}

DEFAULT_REMINDER_SETTINGS: dict[str, Any] = {
    "enabled": True,
    "sound_enabled": True,
    "min_reminder_interval": 15,
    "max_reminder_interval": 240,
    "auto_reschedule": True,
    "reschedule_delay": 30,
    "session_lead_minutes": 15,
    "session_overdue_minutes": 30,
    "task_horizon_hours": 168,
}

DEFAULT_TIMER_SETTINGS: dict[str, Any] = {
    "work_minutes": 25,
    "break_minutes": 5,
    "progress_flush_seconds": 60,
}

# (min, max) bounds; values outside are clamped and reported as info.
_INT_BOUNDS: dict[str, tuple[int, int]] = {
    "daily_study_minutes": (0, 24 * 60),
    "days_per_week": (1, 7),
    "first_slot_hour": (0, 23),
    "last_slot_hour": (0, 23),
    "slot_step_minutes": (15, 24 * 60),
    "max_session_minutes": (1, 24 * 60),
    "min_session_minutes": (1, 24 * 60),
    "default_difficulty": (1, 5),
    "event_window_days": (1, 365),
}


@dataclass(frozen=True, slots=True)
class PlannerConfig:
    daily_study_minutes: int = 360
    days_per_week: int = 7
    first_slot_hour: int = 8
    last_slot_hour: int = 20
    slot_step_minutes: int = 120
    max_session_minutes: int = 120
    min_session_minutes: int = 30
    default_difficulty: int = 3
    event_window_days: int = 30
    skip_past_slots: bool = False
    timezone: str = "UTC"
    score_weights: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_PLANNER_CONFIG["score_weights"])
    )

    @property
    def weekly_budget_minutes(self) -> int:
        return self.daily_study_minutes * self.days_per_week

    @property
    def tz(self) -> tzinfo:
        return resolve_timezone(self.timezone)


@dataclass(frozen=True, slots=True)
class ReminderSettings:
    enabled: bool = True
    sound_enabled: bool = True
    min_reminder_interval: int = 15
    max_reminder_interval: int = 240
    auto_reschedule: bool = True
    reschedule_delay: int = 30
    session_lead_minutes: int = 15
    session_overdue_minutes: int = 30
    task_horizon_hours: int = 168


@dataclass(frozen=True, slots=True)
class TimerSettings:
    work_minutes: int = 25
    break_minutes: int = 5
    progress_flush_seconds: int = 60


def resolve_planner_config(source: Any, validation_report: ValidationReport) -> PlannerConfig:
    """Merge defaults with ``source`` and build an engine-ready config."""
    merged = _merge(DEFAULT_PLANNER_CONFIG, source, "$.config", validation_report)

    for key, (low, high) in _INT_BOUNDS.items():
        value = merged.get(key)
        if not isinstance(value, int) or isinstance(value, bool):
            validation_report.add_error(
                code="INVALID_CONFIG_VALUE",
                message=f"{key} must be an integer",
                field_path=f"$.config.{key}",
            )
            merged[key] = DEFAULT_PLANNER_CONFIG[key]
            continue
        clamped = min(high, max(low, value))
        if clamped != value:
            merged[key] = clamped
            validation_report.add_info(
                code="INFO_CLAMP_APPLIED",
                message=f"{key} was clamped into [{low},{high}]",
                field_path=f"$.config.{key}",
                extra={"applied_value": clamped},
            )

    if merged["last_slot_hour"] < merged["first_slot_hour"]:
        validation_report.add_error(
            code="INVALID_SLOT_WINDOW",
            message="last_slot_hour must be >= first_slot_hour",
            field_path="$.config.last_slot_hour",
            suggested_fix="Swap the hours or widen the study window.",
        )
        merged["first_slot_hour"] = DEFAULT_PLANNER_CONFIG["first_slot_hour"]
        merged["last_slot_hour"] = DEFAULT_PLANNER_CONFIG["last_slot_hour"]

    if merged["min_session_minutes"] > merged["max_session_minutes"]:
        validation_report.add_error(
            code="INVALID_SESSION_BOUNDS",
            message="min_session_minutes must be <= max_session_minutes",
            field_path="$.config.min_session_minutes",
        )
        merged["min_session_minutes"] = DEFAULT_PLANNER_CONFIG["min_session_minutes"]
        merged["max_session_minutes"] = DEFAULT_PLANNER_CONFIG["max_session_minutes"]

    try:
        resolve_timezone(merged["timezone"])
    except (KeyError, TypeError, ValueError):
        validation_report.add_error(
            code="INVALID_TIMEZONE",
            message=f"Unknown timezone: {merged['timezone']!r}",
            field_path="$.config.timezone",
        )
        merged["timezone"] = DEFAULT_PLANNER_CONFIG["timezone"]

    weights = dict(DEFAULT_PLANNER_CONFIG["score_weights"])
    if isinstance(merged.get("score_weights"), dict):
        for key, value in merged["score_weights"].items():
            if key in weights and isinstance(value, (int, float)) and not isinstance(value, bool):
                weights[key] = float(value)
            else:
                validation_report.add_error(
                    code="INVALID_CONFIG_KEY",
                    message=f"Score weight {key!r} is not allowed",
                    field_path=f"$.config.score_weights.{key}",
                    suggested_fix=f"Use one of: {', '.join(sorted(weights))}",
                )
    merged["score_weights"] = weights
    merged["skip_past_slots"] = bool(merged.get("skip_past_slots", False))

    return PlannerConfig(**merged)


def resolve_reminder_settings(source: Any, validation_report: ValidationReport) -> ReminderSettings:
    merged = _merge(DEFAULT_REMINDER_SETTINGS, source, "$.reminders", validation_report)
    if merged["min_reminder_interval"] > merged["max_reminder_interval"]:
        validation_report.add_error(
            code="INVALID_REMINDER_INTERVAL",
            message="min_reminder_interval must be <= max_reminder_interval",
            field_path="$.reminders.min_reminder_interval",
        )
        merged["min_reminder_interval"] = DEFAULT_REMINDER_SETTINGS["min_reminder_interval"]
        merged["max_reminder_interval"] = DEFAULT_REMINDER_SETTINGS["max_reminder_interval"]
    return ReminderSettings(**merged)


def resolve_timer_settings(source: Any, validation_report: ValidationReport) -> TimerSettings:
    merged = _merge(DEFAULT_TIMER_SETTINGS, source, "$.timer", validation_report)
    return TimerSettings(**merged)


def _merge(
    defaults: dict[str, Any],
    source: Any,
    path: str,
    validation_report: ValidationReport,
) -> dict[str, Any]:
    merged = dict(defaults)
    if not isinstance(source, dict):
        return merged

    for key, value in source.items():
        if key not in defaults:
            validation_report.add_error(
                code="INVALID_CONFIG_KEY",
                message=f"Config key {key!r} is not allowed",
                field_path=f"{path}.{key}",
                suggested_fix=f"Use one of: {', '.join(sorted(defaults))}",
            )
            continue
        merged[key] = value
    return merged
