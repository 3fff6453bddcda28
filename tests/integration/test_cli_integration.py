from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path

from studyflow.calendar_csv import CSV_COLUMNS
from studyflow.cli import (
    main,
    run_csv_template_command,
    run_export_csv_command,
    run_import_csv_command,
    run_plan_command,
    run_reminders_command,
)


def _write(path: Path, payload: dict) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def _tasks() -> dict:
    return {
        "schema_version": "1.0",
        "tasks": [
            {
                "task_id": "essay",
                "title": "Essay",
                "subject": "History",
                "priority": "high",
                "difficulty": 4,
                "estimated_minutes": 150,
                "due_date": "2026-01-06T18:00:00Z",
            },
            {
                "task_id": "lab",
                "title": "Lab report",
                "subject": "Math",
                "priority": "low",
                "estimated_minutes": 60,
            },
        ],
    }


def _events() -> dict:
    return {
        "schema_version": "1.0",
        "events": [
            {
                "event_id": "lecture",
                "title": "Lecture",
                "start_time": "2026-01-05T08:30:00Z",
                "end_time": "2026-01-05T09:30:00Z",
            }
        ],
    }


def _base_files(tmp_path: Path, **request_extra: object) -> Path:
    request = tmp_path / "plan_request.json"
    tasks = tmp_path / "tasks.json"
    events = tmp_path / "events.json"
    _write(tasks, _tasks())
    _write(events, _events())
    payload = {
        "schema_version": "1.0",
        "request_id": "req-1",
        "now": "2026-01-05T07:00:00Z",
        "tasks_path": tasks.name,
        "events_path": events.name,
    }
    payload.update(request_extra)
    _write(request, payload)
    return request


def test_plan_command_writes_success_report(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    output = tmp_path / "plan_output.json"

    code = run_plan_command(str(request), str(output))
    payload = _read(output)

    assert code == 0
    assert payload["status"] == "ok"
    assert payload["validation_report"]["errors"] == []
    plan = payload["plan"]
    assert plan["week_start"] == "2026-01-05"
    assert plan["conflict_data_available"] is True
    assert [s["session_id"] for s in plan["sessions"]] == [
        "essay-2026-01-05-10:00",
        "essay-2026-01-05-12:00",
        "lab-2026-01-05-14:00",
    ]
    assert payload["metrics"]["minutes_by_task"] == {"essay": 150, "lab": 60}
    assert payload["warnings"] == []
    assert payload["effective_config"]["daily_study_minutes"] == 360

    trace = payload["decision_trace"]
    assert len(trace) == 49
    assert trace[0]["blocked_by_events"] == ["lecture"]
    assert trace[0]["applied_rules"] == ["RULE_CONFLICT_SKIP"]


def test_plan_command_applies_request_config(tmp_path: Path) -> None:
    request = _base_files(tmp_path, config={"slot_step_minutes": 60, "max_session_minutes": 60})
    output = tmp_path / "plan_output.json"

    assert run_plan_command(str(request), str(output)) == 0
    payload = _read(output)
    assert all(s["duration_minutes"] <= 60 for s in payload["plan"]["sessions"])
    assert payload["effective_config"]["slot_step_minutes"] == 60


def test_plan_command_reports_validation_errors(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    broken = _tasks()
    broken["tasks"][0]["estimated_minutes"] = 0
    broken["tasks"][1]["priority"] = "urgent"
    _write(tmp_path / "tasks.json", broken)
    output = tmp_path / "plan_output.json"

    code = run_plan_command(str(request), str(output))
    payload = _read(output)

    assert code == 2
    assert payload["status"] == "error"
    assert payload["error"]["code"] == "validation_error"
    codes = {item["code"] for item in payload["error"]["details"]}
    assert "INVALID_ESTIMATED_TIME" in codes
    assert "INVALID_PRIORITY" in codes


def test_plan_command_rejects_unreadable_request(tmp_path: Path) -> None:
    request = tmp_path / "plan_request.json"
    request.write_text("{not json", encoding="utf-8")
    output = tmp_path / "plan_output.json"

    assert run_plan_command(str(request), str(output)) == 2
    assert _read(output)["error"]["code"] == "request_read_error"


def test_plan_command_requires_tasks_path(tmp_path: Path) -> None:
    request = tmp_path / "plan_request.json"
    _write(request, {"schema_version": "1.0"})
    output = tmp_path / "plan_output.json"

    assert run_plan_command(str(request), str(output)) == 2
    details = _read(output)["error"]["details"]
    assert details[0]["code"] == "missing_field"
    assert details[0]["path"] == "$.tasks_path"


def test_missing_tasks_file_is_input_load_error(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    (tmp_path / "tasks.json").unlink()
    output = tmp_path / "plan_output.json"

    assert run_plan_command(str(request), str(output)) == 2
    payload = _read(output)
    assert payload["error"]["code"] == "input_load_error"
    assert payload["error"]["details"][0]["code"] == "file_not_found"


def test_missing_events_file_plans_without_conflicts(tmp_path: Path) -> None:
    request = _base_files(tmp_path, events_path="missing-events.json")
    output = tmp_path / "plan_output.json"

    assert run_plan_command(str(request), str(output)) == 0
    payload = _read(output)

    assert payload["plan"]["conflict_data_available"] is False
    assert payload["plan"]["sessions"][0]["session_id"] == "essay-2026-01-05-08:00"
    assert [w["code"] for w in payload["warnings"]] == ["WARN_CONFLICT_DATA_UNAVAILABLE"]
    assert payload["suggestions"][0]["code"] == "SUGGEST_CHECK_CALENDAR_SOURCE"


def test_csv_events_file_blocks_slots(tmp_path: Path) -> None:
    csv_path = tmp_path / "calendar.csv"
    csv_path.write_text(
        ",".join(CSV_COLUMNS) + "\nMidterm,exam,Math,,2026-01-05,08:00,240\n",
        encoding="utf-8",
    )
    request = _base_files(tmp_path, events_path=csv_path.name)
    output = tmp_path / "plan_output.json"

    assert run_plan_command(str(request), str(output)) == 0
    sessions = _read(output)["plan"]["sessions"]
    assert sessions[0]["session_id"] == "essay-2026-01-05-12:00"


def test_reminders_command_uses_saved_plan(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    plan_output = tmp_path / "plan_output.json"
    assert run_plan_command(str(request), str(plan_output)) == 0

    reminders_request = tmp_path / "reminders_request.json"
    _write(
        reminders_request,
        {
            "schema_version": "1.0",
            "now": "2026-01-06T09:00:00Z",
            "tasks_path": "tasks.json",
            "plan_path": plan_output.name,
        },
    )
    output = tmp_path / "reminders.json"

    assert run_reminders_command(str(reminders_request), str(output)) == 0
    payload = _read(output)

    assert payload["status"] == "ok"
    assert payload["enabled"] is True
    urgency = {item["task_id"]: item for item in payload["task_urgency"]}
    assert urgency["essay"]["urgency_level"] == 5
    assert urgency["essay"]["interval_minutes"] == 15
    assert urgency["lab"]["urgency_level"] == 1
    assert [n["kind"] for n in payload["notifications"]] == ["session_overdue"] * 3
    pending = {item["reminder_id"]: item for item in payload["pending"]}
    assert pending["task-essay"]["fire_at"] == "2026-01-06T09:15:00+00:00"
    assert "reschedule-essay-2026-01-05-10:00" in pending
    assert payload["reschedules"] == []


def test_reminders_command_requires_plan_path(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    output = tmp_path / "reminders.json"

    assert run_reminders_command(str(request), str(output)) == 2
    payload = _read(output)
    assert payload["error"]["code"] == "input_load_error"
    assert payload["error"]["details"][0]["path"] == "$.plan_path"


def test_import_csv_command(tmp_path: Path) -> None:
    csv_path = tmp_path / "calendar.csv"
    csv_path.write_text(
        ",".join(CSV_COLUMNS) + "\nMidterm,exam,Math,Chapters 1-4,2026-01-08,09:00,120\n",
        encoding="utf-8",
    )
    output = tmp_path / "events.json"

    assert run_import_csv_command(str(csv_path), str(output), timezone_name="Europe/Rome") == 0
    payload = _read(output)

    assert payload["count"] == 1
    event = payload["events"][0]
    assert event["event_type"] == "exam"
    assert event["start_time"] == "2026-01-08T09:00:00+01:00"
    assert event["end_time"] == "2026-01-08T11:00:00+01:00"


def test_import_csv_command_reports_row_errors(tmp_path: Path) -> None:
    csv_path = tmp_path / "calendar.csv"
    csv_path.write_text(
        ",".join(CSV_COLUMNS) + "\nMidterm,exam,Math,,2026-01-08,09:00,120\nParty,party,,,2026-01-09,21:00,60\n",
        encoding="utf-8",
    )
    output = tmp_path / "events.json"

    assert run_import_csv_command(str(csv_path), str(output)) == 2
    payload = _read(output)
    assert payload["error"]["code"] == "csv_validation_error"
    details = payload["error"]["details"]
    assert [(item["code"], item["path"]) for item in details] == [("INVALID_ENUM_VALUE", "$.csv[3].event_type")]


def test_import_csv_command_missing_file(tmp_path: Path) -> None:
    output = tmp_path / "events.json"
    assert run_import_csv_command(str(tmp_path / "nope.csv"), str(output)) == 2
    assert _read(output)["error"]["code"] == "csv_read_error"


def test_imported_events_feed_the_planner(tmp_path: Path) -> None:
    csv_path = tmp_path / "calendar.csv"
    csv_path.write_text(
        ",".join(CSV_COLUMNS) + "\nMidterm,exam,Math,,2026-01-05,08:00,240\n",
        encoding="utf-8",
    )
    imported = tmp_path / "imported.json"
    assert run_import_csv_command(str(csv_path), str(imported)) == 0

    request = _base_files(tmp_path, events_path="calendar_events.json")
    _write(tmp_path / "calendar_events.json", {"events": _read(imported)["events"]})
    output = tmp_path / "plan_output.json"

    assert run_plan_command(str(request), str(output)) == 0
    assert _read(output)["plan"]["sessions"][0]["start_time"] == "12:00"


def test_csv_template_and_export(tmp_path: Path) -> None:
    template = tmp_path / "template.csv"
    assert run_csv_template_command(str(template)) == 0
    assert template.read_text(encoding="utf-8").splitlines()[0] == ",".join(CSV_COLUMNS)

    request = _base_files(tmp_path)
    plan_output = tmp_path / "plan_output.json"
    assert run_plan_command(str(request), str(plan_output)) == 0

    exported = tmp_path / "sessions.csv"
    assert run_export_csv_command(str(plan_output), str(exported)) == 0
    lines = exported.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 4
    assert lines[1].startswith("Essay,study,History,")

    assert run_export_csv_command(str(tmp_path / "missing.json"), str(exported)) == 2


def test_main_dispatches_subcommands(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    output = tmp_path / "plan_output.json"

    assert main(["--log-level", "DEBUG", "plan", "--request", str(request), "--output", str(output)]) == 0
    assert _read(output)["status"] == "ok"

    template = tmp_path / "template.csv"
    assert main(["csv-template", "--output", str(template)]) == 0
    assert template.exists()


def test_plan_uses_current_time_when_request_has_none(tmp_path: Path) -> None:
    request = _base_files(tmp_path)
    payload = _read(request)
    del payload["now"]
    _write(request, payload)
    output = tmp_path / "plan_output.json"

    assert run_plan_command(str(request), str(output)) == 0
    week_start = datetime.fromisoformat(_read(output)["plan"]["week_start"]).date()
    assert week_start.weekday() == 0
    assert datetime.now().date() - week_start < timedelta(days=8)
