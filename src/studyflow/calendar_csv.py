"""CSV calendar import and study-session export."""

from __future__ import annotations

import csv
import io
import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any

from studyflow.models import ExternalEvent, WeeklyPlan
from studyflow.validation import ValidationReport

CSV_COLUMNS = (
    "title",
    "event_type",
    "subject",
    "description",
    "date",
    "start_time",
    "duration_minutes",
)
CSV_EVENT_TYPES = ("study", "exam", "assignment")
DEFAULT_DURATION_MINUTES = 60

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")

_TEMPLATE_ROWS = (
    ("Algebra review", "study", "Math", "Chapter 3 exercises", "2025-10-15", "09:00", "60"),
    ("History exam", "exam", "History", "World War II", "2025-10-20", "14:00", "120"),
    ("Physics report", "assignment", "Physics", "Lab report hand-in", "2025-10-25", "10:00", "30"),
)


def build_template() -> str:
    """Return the downloadable CSV template with example rows."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    writer.writerows(_TEMPLATE_ROWS)
    return buffer.getvalue()


def _parse_duration(raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_DURATION_MINUTES
    return value or DEFAULT_DURATION_MINUTES


def parse_csv(content: str) -> list[dict[str, Any]]:
    """Parse CSV content into event rows. Blank lines are ignored."""
    lines = [line for line in content.splitlines() if line.strip()]
    if len(lines) < 2:
        return []

    events: list[dict[str, Any]] = []
    for raw in csv.DictReader(lines, skipinitialspace=True):
        row = {str(key).strip(): (value or "").strip() for key, value in raw.items() if key is not None}
        events.append(
            {
                "title": row.get("title", ""),
                "event_type": row.get("event_type", ""),
                "subject": row.get("subject") or None,
                "description": row.get("description") or None,
                "date": row.get("date", ""),
                "start_time": row.get("start_time", ""),
                "duration_minutes": _parse_duration(row.get("duration_minutes", "")),
            }
        )
    return events


def validate_csv_events(events: list[dict[str, Any]]) -> ValidationReport:
    """Validate parsed rows; row numbers count the header as row 1."""
    report = ValidationReport()

    for index, event in enumerate(events):
        row = index + 2
        path = f"$.csv[{row}]"

        if not str(event.get("title", "")).strip():
            report.add_error(
                code="MISSING_REQUIRED_FIELD",
                message="title is required",
                field_path=f"{path}.title",
                extra={"row": row},
            )
        if event.get("event_type") not in CSV_EVENT_TYPES:
            report.add_error(
                code="INVALID_ENUM_VALUE",
                message=f"event_type must be one of {', '.join(CSV_EVENT_TYPES)}",
                field_path=f"{path}.event_type",
                extra={"row": row},
            )
        if not _DATE_RE.match(str(event.get("date", ""))) or not _valid_date(event.get("date")):
            report.add_error(
                code="INVALID_DATE_FORMAT",
                message="date must use the YYYY-MM-DD format",
                field_path=f"{path}.date",
                extra={"row": row},
            )
        if not _TIME_RE.match(str(event.get("start_time", ""))):
            report.add_error(
                code="INVALID_TIME_FORMAT",
                message="start_time must use the HH:MM format",
                field_path=f"{path}.start_time",
                extra={"row": row},
            )
        duration = event.get("duration_minutes")
        if not isinstance(duration, int) or duration <= 0:
            report.add_error(
                code="OUT_OF_RANGE",
                message="duration_minutes must be a positive number",
                field_path=f"{path}.duration_minutes",
                extra={"row": row},
            )

    return report


def _valid_date(raw: Any) -> bool:
    try:
        datetime.strptime(str(raw), "%Y-%m-%d")
    except ValueError:
        return False
    return True


def to_external_event(event: dict[str, Any], row: int, *, tz: tzinfo = timezone.utc) -> ExternalEvent:
    start = datetime.strptime(f"{event['date']} {event['start_time']}", "%Y-%m-%d %H:%M").replace(tzinfo=tz)
    return ExternalEvent(
        event_id=f"csv-{row}-{event['date']}-{event['start_time']}",
        start=start,
        end=start + timedelta(minutes=int(event["duration_minutes"])),
        title=event.get("title"),
        event_type=str(event.get("event_type") or "other"),
        subject=event.get("subject"),
    )


def import_csv(content: str, *, tz: tzinfo = timezone.utc) -> tuple[list[ExternalEvent], ValidationReport]:
    """Parse, validate and convert CSV content.

    Nothing is converted when any row is invalid.
    """
    events = parse_csv(content)
    report = validate_csv_events(events)
    if report.errors:
        return [], report
    return [to_external_event(event, index + 2, tz=tz) for index, event in enumerate(events)], report


def export_sessions_csv(plan: WeeklyPlan) -> str:
    """Render plan sessions in the import column layout."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for session in plan.sessions:
        writer.writerow(
            (
                session.title,
                "study",
                session.subject,
                f"Study session for task {session.task_id}",
                session.date.isoformat(),
                session.start_time.strftime("%H:%M"),
                session.duration_minutes,
            )
        )
    return buffer.getvalue()
