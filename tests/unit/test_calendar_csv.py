from __future__ import annotations

from datetime import date, datetime, time, timezone

from studyflow.calendar_csv import (
    CSV_COLUMNS,
    build_template,
    export_sessions_csv,
    import_csv,
    parse_csv,
    to_external_event,
    validate_csv_events,
)
from studyflow.models import StudySession, WeeklyPlan

HEADER = ",".join(CSV_COLUMNS)


def test_template_has_header_and_valid_examples() -> None:
    template = build_template()
    lines = template.strip().splitlines()

    assert lines[0] == HEADER
    assert len(lines) == 4
    assert validate_csv_events(parse_csv(template)).errors == []


def test_parse_ignores_blank_lines_and_defaults_duration() -> None:
    content = "\n".join(
        [
            HEADER,
            "",
            "Review,study,Math,,2026-01-06,09:00,",
            "   ",
            "Exam,exam,History,Final,2026-01-08,14:00,abc",
            "Lab,assignment,,,2026-01-09,10:00,45",
        ]
    )

    rows = parse_csv(content)

    assert [row["title"] for row in rows] == ["Review", "Exam", "Lab"]
    assert [row["duration_minutes"] for row in rows] == [60, 60, 45]
    assert rows[2]["subject"] is None


def test_parse_handles_quoted_commas() -> None:
    rows = parse_csv(HEADER + '\n"Essay, draft",assignment,English,"intro, body",2026-01-06,09:00,30\n')
    assert rows[0]["title"] == "Essay, draft"
    assert rows[0]["description"] == "intro, body"


def test_header_only_yields_no_rows() -> None:
    assert parse_csv(HEADER + "\n") == []
    assert parse_csv("") == []


def test_validation_reports_row_numbers_from_two() -> None:
    content = "\n".join(
        [
            HEADER,
            "Good,study,Math,,2026-01-06,09:00,60",
            ",party,Math,,06/01/2026,9am,-10",
        ]
    )

    report = validate_csv_events(parse_csv(content))

    assert {issue.extra["row"] for issue in report.errors} == {3}
    fields = sorted(issue.field_path for issue in report.errors)
    assert fields == [
        "$.csv[3].date",
        "$.csv[3].duration_minutes",
        "$.csv[3].event_type",
        "$.csv[3].start_time",
        "$.csv[3].title",
    ]


def test_import_converts_rows_to_events() -> None:
    events, report = import_csv(HEADER + "\nExam,exam,History,,2026-01-08,14:00,90\n")

    assert report.errors == []
    assert len(events) == 1
    event = events[0]
    assert event.start == datetime(2026, 1, 8, 14, 0, tzinfo=timezone.utc)
    assert event.end == datetime(2026, 1, 8, 15, 30, tzinfo=timezone.utc)
    assert event.event_type == "exam"
    assert event.subject == "History"


def test_import_returns_nothing_when_any_row_is_invalid() -> None:
    events, report = import_csv(HEADER + "\nExam,exam,,,2026-01-08,14:00,90\nBad,nope,,,2026-01-08,14:00,90\n")
    assert events == []
    assert len(report.errors) == 1


def test_to_external_event_uses_row_in_id() -> None:
    row = {"title": "Lab", "event_type": "study", "date": "2026-01-09", "start_time": "10:00", "duration_minutes": 45}
    event = to_external_event(row, 4)
    assert event.event_id == "csv-4-2026-01-09-10:00"


def test_export_uses_import_layout() -> None:
    plan = WeeklyPlan(
        week_start=date(2026, 1, 5),
        sessions=[
            StudySession(
                session_id="s1",
                task_id="essay",
                date=date(2026, 1, 6),
                start_time=time(8, 0),
                duration_minutes=90,
                subject="History",
                title="Essay",
                priority="high",
            )
        ],
    )

    exported = export_sessions_csv(plan)
    rows = parse_csv(exported)

    assert exported.splitlines()[0] == HEADER
    assert rows[0]["event_type"] == "study"
    assert rows[0]["date"] == "2026-01-06"
    assert rows[0]["start_time"] == "08:00"
    assert rows[0]["duration_minutes"] == 90
    assert validate_csv_events(rows).errors == []
