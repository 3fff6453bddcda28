"""Domain types shared by the scheduler, reminders and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

PRIORITIES = ("low", "medium", "high")
EVENT_TYPES = ("study", "exam", "assignment", "other")
DIFFICULTY_LABELS = {"easy": 1, "medium": 3, "hard": 5}

# Tasks without a subject are budgeted together under this label.
DEFAULT_SUBJECT = "General"


def resolve_timezone(name: str | None) -> tzinfo:
    if not name or name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def parse_datetime(value: str | datetime, tz: tzinfo) -> datetime:
    """Parse an ISO-8601 value into an aware datetime in ``tz``.

    Naive values are interpreted as local time in ``tz``; a trailing ``Z`` is
    accepted. Raises ``ValueError`` for anything unparsable.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported datetime value: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def parse_difficulty(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, str):
        if value in DIFFICULTY_LABELS:
            return DIFFICULTY_LABELS[value]
        return int(value)
    return int(value)


def _format_time(value: time) -> str:
    return value.strftime("%H:%M")


@dataclass(slots=True)
class Task:
    """A user task the scheduler can allocate study time to."""

    task_id: str
    title: str
    estimated_minutes: int
    subject: str | None = None
    due_date: datetime | None = None
    priority: str = "medium"
    difficulty: int | None = None
    completed: bool = False

    @property
    def subject_label(self) -> str:
        return self.subject or DEFAULT_SUBJECT

    @classmethod
    def from_dict(cls, payload: dict[str, Any], *, tz: tzinfo = timezone.utc) -> "Task":
        raw_due = payload.get("due_date")
        estimated = payload.get("estimated_minutes", payload.get("estimated_time"))
        return cls(
            task_id=str(payload.get("task_id", payload.get("id", ""))),
            title=str(payload.get("title", "")),
            estimated_minutes=int(estimated),
            subject=payload.get("subject") or None,
            due_date=parse_datetime(raw_due, tz) if raw_due else None,
            priority=str(payload.get("priority", "medium")),
            difficulty=parse_difficulty(payload.get("difficulty")),
            completed=bool(payload.get("completed", False)),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "subject": self.subject,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "priority": self.priority,
            "difficulty": self.difficulty,
            "estimated_minutes": self.estimated_minutes,
            "completed": self.completed,
        }


@dataclass(slots=True, frozen=True)
class ExternalEvent:
    """Read-only calendar event imported from an external provider."""

    event_id: str
    start: datetime
    end: datetime
    title: str | None = None
    event_type: str = "other"
    subject: str | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any], *, tz: tzinfo = timezone.utc) -> "ExternalEvent":
        return cls(
            event_id=str(payload.get("event_id", payload.get("id", ""))),
            start=parse_datetime(payload.get("start_time", payload.get("start")), tz),
            end=parse_datetime(payload.get("end_time", payload.get("end")), tz),
            title=payload.get("title"),
            event_type=str(payload.get("event_type") or "other"),
            subject=payload.get("subject") or None,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "title": self.title,
            "event_type": self.event_type,
            "subject": self.subject,
            "start_time": self.start.isoformat(),
            "end_time": self.end.isoformat(),
        }


@dataclass(slots=True, frozen=True, order=True)
class Slot:
    """Candidate study block: a day and a start time."""

    day: date
    start_time: time
    tz: tzinfo = field(default=timezone.utc, compare=False)

    @property
    def start(self) -> datetime:
        return datetime.combine(self.day, self.start_time, tzinfo=self.tz)

    @property
    def slot_id(self) -> str:
        return f"{self.day.isoformat()}-{_format_time(self.start_time)}"


@dataclass(slots=True)
class StudySession:
    session_id: str
    task_id: str
    date: date
    start_time: time
    duration_minutes: int
    subject: str
    title: str
    priority: str
    completed: bool = False

    def start(self, tz: tzinfo) -> datetime:
        return datetime.combine(self.date, self.start_time, tzinfo=tz)

    def end(self, tz: tzinfo) -> datetime:
        return self.start(tz) + timedelta(minutes=self.duration_minutes)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "StudySession":
        return cls(
            session_id=str(payload["session_id"]),
            task_id=str(payload["task_id"]),
            date=date.fromisoformat(payload["date"]),
            start_time=time.fromisoformat(payload["start_time"]),
            duration_minutes=int(payload["duration_minutes"]),
            subject=str(payload.get("subject", DEFAULT_SUBJECT)),
            title=str(payload.get("title", "")),
            priority=str(payload.get("priority", "medium")),
            completed=bool(payload.get("completed", False)),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "task_id": self.task_id,
            "date": self.date.isoformat(),
            "start_time": _format_time(self.start_time),
            "duration_minutes": self.duration_minutes,
            "completed": self.completed,
            "subject": self.subject,
            "title": self.title,
            "priority": self.priority,
        }


@dataclass(slots=True)
class WeeklyPlan:
    """Result of one generation run. Replaced wholesale on regeneration."""

    week_start: date
    sessions: list[StudySession] = field(default_factory=list)
    total_hours: float = 0.0
    coverage: dict[str, float] = field(default_factory=dict)
    budget_by_subject: dict[str, int] = field(default_factory=dict)
    conflict_data_available: bool = True
    warnings: list[dict[str, Any]] = field(default_factory=list)

    def find_session(self, session_id: str) -> StudySession | None:
        return next((s for s in self.sessions if s.session_id == session_id), None)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "WeeklyPlan":
        return cls(
            week_start=date.fromisoformat(payload["week_start"]),
            sessions=[StudySession.from_dict(item) for item in payload.get("sessions", [])],
            total_hours=float(payload.get("total_hours", 0.0)),
            coverage={str(k): float(v) for k, v in payload.get("coverage", {}).items()},
            budget_by_subject={str(k): int(v) for k, v in payload.get("budget_by_subject", {}).items()},
            conflict_data_available=bool(payload.get("conflict_data_available", True)),
            warnings=list(payload.get("warnings", [])),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "week_start": self.week_start.isoformat(),
            "sessions": [session.as_dict() for session in self.sessions],
            "total_hours": self.total_hours,
            "coverage": dict(self.coverage),
            "budget_by_subject": dict(self.budget_by_subject),
            "conflict_data_available": self.conflict_data_available,
            "warnings": list(self.warnings),
        }
