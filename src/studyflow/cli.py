"""CLI entrypoint for studyflow."""

from __future__ import annotations

import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from studyflow.calendar_csv import build_template, export_sessions_csv, import_csv
from studyflow.engine import run_planner
from studyflow.io import read_json, read_text, write_json, write_text
from studyflow.metrics import collect_metrics
from studyflow.models import ExternalEvent, Task, WeeklyPlan, parse_datetime
from studyflow.normalization import (
    PlannerConfig,
    normalize_request,
    resolve_planner_config,
    resolve_reminder_settings,
)
from studyflow.reminders import Reminder, ReminderScheduler, reminder_interval, reminder_urgency_level
from studyflow.reporting import (
    build_error_report,
    build_error_report_with_validation,
    build_success_report,
)
from studyflow.repository import EventSource, InMemoryEventSource, JsonEventSource
from studyflow.validation import (
    ValidationError,
    ValidationReport,
    validate_domain_inputs,
    validate_inputs_with_schema,
    validate_plan_request,
)

logger = logging.getLogger(__name__)


def _resolve_input_path(request_file: Path, value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return (request_file.parent / path).resolve()


def _read_error(exc: Exception, path_field: str, resolved: Path) -> ValidationError:
    if isinstance(exc, FileNotFoundError):
        return ValidationError(
            code="file_not_found",
            message=f"Referenced file not found: {resolved}",
            path=f"$.{path_field}",
        )
    return ValidationError(code="invalid_json", message=str(exc), path=f"$.{path_field}")


def _load_referenced_inputs(
    request_file: Path,
    request: dict[str, Any],
    *,
    required: tuple[str, ...],
) -> tuple[dict[str, Any], list[ValidationError]]:
    """Read the JSON files a request points to.

    Events are optional: a missing events file is left to the event source,
    which fails open at planning time. A CSV events file is parsed as a
    calendar import.
    """
    loaded = dict(request)
    errors: list[ValidationError] = []

    mapping = {"tasks_path": "tasks", "plan_path": "plan"}
    for path_field, target_field in mapping.items():
        if path_field not in required and not request.get(path_field):
            continue
        if not request.get(path_field):
            errors.append(
                ValidationError(
                    code="missing_field",
                    message=f"Missing required field: {path_field}",
                    path=f"$.{path_field}",
                )
            )
            continue
        resolved = _resolve_input_path(request_file, request[path_field])
        try:
            loaded[target_field] = read_json(resolved)
        except (OSError, ValueError) as exc:
            errors.append(_read_error(exc, path_field, resolved))

    if request.get("events_path"):
        resolved = _resolve_input_path(request_file, request["events_path"])
        loaded["events_file"] = resolved
        if resolved.suffix.lower() != ".csv" and resolved.exists():
            try:
                loaded["events"] = read_json(resolved)
            except (OSError, ValueError) as exc:
                errors.append(_read_error(exc, "events_path", resolved))

    return loaded, errors


def _issues_to_errors(report: ValidationReport) -> list[ValidationError]:
    return [
        ValidationError(code=issue.code, message=issue.message, path=issue.field_path)
        for issue in report.errors
    ]


def _prepare_request(
    request_path: str,
    output_path: str,
    *,
    required: tuple[str, ...],
) -> tuple[dict[str, Any], PlannerConfig, ValidationReport] | None:
    """Shared read/validate pipeline; writes an error report and returns None on failure."""
    validation_report = ValidationReport()

    try:
        request_payload = read_json(request_path)
    except Exception as exc:  # noqa: BLE001
        error = build_error_report(
            [ValidationError(code="invalid_request", message=str(exc), path="$.request")],
            code="request_read_error",
        )
        write_json(output_path, error)
        return None

    request_payload = normalize_request(request_payload)
    errors = validate_plan_request(request_payload)
    if errors:
        write_json(output_path, build_error_report(errors))
        return None

    loaded_request, load_errors = _load_referenced_inputs(
        Path(request_path),
        request_payload,
        required=required,
    )
    if load_errors:
        write_json(
            output_path,
            build_error_report_with_validation(
                load_errors,
                validation_report=validation_report,
                code="input_load_error",
            ),
        )
        return None

    loaded_request["plan_request"] = request_payload
    config = resolve_planner_config(request_payload.get("config"), validation_report)
    loaded_request["reminder_settings"] = resolve_reminder_settings(
        request_payload.get("reminders"),
        validation_report,
    )

    validation_report.extend(validate_domain_inputs(loaded_request))
    validation_report.extend(validate_inputs_with_schema(loaded_request))

    if validation_report.errors:
        write_json(
            output_path,
            build_error_report_with_validation(
                _issues_to_errors(validation_report),
                validation_report=validation_report,
                code="validation_error",
            ),
        )
        return None

    return loaded_request, config, validation_report


def _request_now(loaded_request: dict[str, Any], config: PlannerConfig) -> datetime:
    raw = loaded_request["plan_request"].get("now")
    if raw:
        return parse_datetime(raw, config.tz)
    return datetime.now(config.tz)


def _tasks_from(loaded_request: dict[str, Any], config: PlannerConfig) -> list[Task]:
    return [
        Task.from_dict(item, tz=config.tz)
        for item in loaded_request.get("tasks", {}).get("tasks", [])
        if isinstance(item, dict)
    ]


def _event_source_from(loaded_request: dict[str, Any], config: PlannerConfig) -> EventSource | None:
    if "events" in loaded_request:
        return InMemoryEventSource(
            ExternalEvent.from_dict(item, tz=config.tz)
            for item in loaded_request["events"].get("events", [])
            if isinstance(item, dict)
        )
    if "events_file" in loaded_request:
        return JsonEventSource(loaded_request["events_file"], tz=config.tz)
    return None


def _effective_config(config: PlannerConfig) -> dict[str, Any]:
    return {
        "daily_study_minutes": config.daily_study_minutes,
        "days_per_week": config.days_per_week,
        "first_slot_hour": config.first_slot_hour,
        "last_slot_hour": config.last_slot_hour,
        "slot_step_minutes": config.slot_step_minutes,
        "max_session_minutes": config.max_session_minutes,
        "min_session_minutes": config.min_session_minutes,
        "default_difficulty": config.default_difficulty,
        "event_window_days": config.event_window_days,
        "skip_past_slots": config.skip_past_slots,
        "timezone": config.timezone,
        "score_weights": dict(config.score_weights),
    }


def run_plan_command(request_path: str, output_path: str) -> int:
    prepared = _prepare_request(request_path, output_path, required=("tasks_path",))
    if prepared is None:
        return 2
    loaded_request, config, validation_report = prepared

    tasks = _tasks_from(loaded_request, config)
    result = run_planner(
        tasks,
        now=_request_now(loaded_request, config),
        event_source=_event_source_from(loaded_request, config),
        config=config,
    )
    plan: WeeklyPlan = result["plan"]
    write_json(
        output_path,
        build_success_report(
            plan,
            metrics=collect_metrics(plan, tasks),
            suggestions=result["suggestions"],
            decision_trace=result["decision_trace"],
            effective_config=_effective_config(config),
            validation_report=validation_report,
        ),
    )
    logger.info("Plan written to %s", output_path)
    return 0


def _plan_from_payload(payload: dict[str, Any]) -> WeeklyPlan:
    if "week_start" not in payload and isinstance(payload.get("plan"), dict):
        payload = payload["plan"]
    return WeeklyPlan.from_dict(payload)


def _reminder_as_dict(reminder: Reminder) -> dict[str, Any]:
    return {
        "reminder_id": reminder.reminder_id,
        "kind": reminder.kind,
        "fire_at": reminder.fire_at.isoformat(),
        "urgency_level": reminder.urgency_level,
        "task_id": reminder.task_id,
        "session_id": reminder.session_id,
        "retry_count": reminder.retry_count,
    }


def run_reminders_command(request_path: str, output_path: str) -> int:
    prepared = _prepare_request(request_path, output_path, required=("tasks_path", "plan_path"))
    if prepared is None:
        return 2
    loaded_request, config, validation_report = prepared

    try:
        plan = _plan_from_payload(loaded_request["plan"])
    except (KeyError, TypeError, ValueError) as exc:
        write_json(
            output_path,
            build_error_report(
                [ValidationError(code="invalid_plan", message=str(exc), path="$.plan_path")],
                code="input_load_error",
            ),
        )
        return 2

    now = _request_now(loaded_request, config)
    tasks = _tasks_from(loaded_request, config)
    settings = loaded_request["reminder_settings"]
    reschedules: list[dict[str, Any]] = []
    scheduler = ReminderScheduler(
        settings,
        on_reschedule=lambda session_id, new_time: reschedules.append(
            {"session_id": session_id, "new_time": new_time}
        ),
        tz=config.tz,
    )
    scheduler.sync(tasks, plan.sessions, now)

    task_urgency = []
    for task in tasks:
        if task.completed:
            continue
        level = reminder_urgency_level(task, now)
        task_urgency.append(
            {
                "task_id": task.task_id,
                "urgency_level": level,
                "interval_minutes": reminder_interval(level, settings),
            }
        )

    write_json(
        output_path,
        {
            "status": "ok",
            "now": now.isoformat(),
            "enabled": settings.enabled,
            "task_urgency": task_urgency,
            "notifications": [
                {
                    "title": item.title,
                    "body": item.body,
                    "tag": item.tag,
                    "kind": item.kind,
                    "urgency_level": item.urgency_level,
                    "require_interaction": item.require_interaction,
                    "silent": item.silent,
                    "auto_close_seconds": item.auto_close_seconds,
                }
                for item in scheduler.history
            ],
            "pending": [_reminder_as_dict(reminder) for reminder in scheduler.queue.pending()],
            "reschedules": reschedules,
            "validation_report": validation_report.as_dict(),
        },
    )
    return 0


def run_import_csv_command(csv_path: str, output_path: str, *, timezone_name: str = "UTC") -> int:
    report = ValidationReport()
    config = resolve_planner_config({"timezone": timezone_name}, report)
    try:
        content = read_text(csv_path)
    except OSError as exc:
        write_json(
            output_path,
            build_error_report(
                [ValidationError(code="file_not_found", message=str(exc), path="$.csv")],
                code="csv_read_error",
            ),
        )
        return 2

    events, csv_report = import_csv(content, tz=config.tz)
    report.extend(csv_report)
    if report.errors:
        write_json(
            output_path,
            build_error_report_with_validation(
                _issues_to_errors(report),
                validation_report=report,
                code="csv_validation_error",
            ),
        )
        return 2

    logger.info("Imported %d events from %s", len(events), csv_path)
    write_json(
        output_path,
        {
            "status": "ok",
            "count": len(events),
            "events": [event.as_dict() for event in events],
        },
    )
    return 0


def run_csv_template_command(output_path: str) -> int:
    write_text(output_path, build_template())
    return 0


def run_export_csv_command(plan_path: str, output_path: str) -> int:
    try:
        plan = _plan_from_payload(read_json(plan_path))
    except (OSError, KeyError, TypeError, ValueError) as exc:
        logger.error("Cannot read plan %s: %s", plan_path, exc)
        return 2
    write_text(output_path, export_sessions_csv(plan))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="studyflow", description="Weekly study planner CLI")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan_parser = subparsers.add_parser("plan", help="Generate a weekly plan from plan_request JSON")
    plan_parser.add_argument("--request", required=True, help="Path to plan_request.json")
    plan_parser.add_argument("--output", required=True, help="Path to plan_output.json")

    reminders_parser = subparsers.add_parser("reminders", help="Compute reminders for a saved plan")
    reminders_parser.add_argument("--request", required=True, help="Path to a request with tasks_path and plan_path")
    reminders_parser.add_argument("--output", required=True, help="Path to reminders.json")

    import_parser = subparsers.add_parser("import-csv", help="Validate and convert a calendar CSV")
    import_parser.add_argument("--csv", required=True, help="Path to the CSV file")
    import_parser.add_argument("--output", required=True, help="Path to events.json")
    import_parser.add_argument("--timezone", default="UTC", help="Timezone for CSV local times")

    template_parser = subparsers.add_parser("csv-template", help="Write the CSV import template")
    template_parser.add_argument("--output", required=True, help="Path to the template CSV")

    export_parser = subparsers.add_parser("export-csv", help="Export plan sessions as CSV")
    export_parser.add_argument("--plan", required=True, help="Path to plan_output.json")
    export_parser.add_argument("--output", required=True, help="Path to the CSV file")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "plan":
        return run_plan_command(args.request, args.output)
    if args.command == "reminders":
        return run_reminders_command(args.request, args.output)
    if args.command == "import-csv":
        return run_import_csv_command(args.csv, args.output, timezone_name=args.timezone)
    if args.command == "csv-template":
        return run_csv_template_command(args.output)
    if args.command == "export-csv":
        return run_export_csv_command(args.plan, args.output)

    parser.error("Unknown command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
