"""Build CLI reports."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from studyflow.models import WeeklyPlan
from studyflow.validation import ValidationError, ValidationReport


def build_error_report(errors: list[ValidationError], code: str = "validation_error") -> dict[str, Any]:
    """Return a JSON-serializable error report."""
    return {
        "status": "error",
        "error": {
            "code": code,
            "count": len(errors),
            "details": [
                {"code": err.code, "message": err.message, "path": err.path}
                for err in errors
            ],
        },
    }


def build_error_report_with_validation(
    errors: list[ValidationError],
    validation_report: ValidationReport,
    code: str = "validation_error",
) -> dict[str, Any]:
    payload = build_error_report(errors, code=code)
    payload["validation_report"] = validation_report.as_dict()
    return payload


def build_success_report(
    plan: WeeklyPlan,
    *,
    metrics: dict[str, Any],
    suggestions: list[dict[str, Any]],
    decision_trace: list[dict[str, Any]],
    effective_config: dict[str, Any],
    validation_report: ValidationReport,
) -> dict[str, Any]:
    """Return a JSON-serializable success report."""
    generated_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    plan_id = f"plan-{plan.week_start.isoformat()}-{generated_at.replace(':', '').replace('-', '')[:15]}"
    return {
        "status": "ok",
        "plan_id": plan_id,
        "generated_at": generated_at,
        "plan": plan.as_dict(),
        "metrics": metrics,
        "warnings": list(plan.warnings),
        "suggestions": suggestions,
        "decision_trace": decision_trace,
        "effective_config": effective_config,
        "validation_report": validation_report.as_dict(),
    }
