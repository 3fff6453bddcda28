"""Validation for plan request payload."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .errors import ValidationError

_REQUIRED_PATH_FIELDS = ("tasks_path",)
_OPTIONAL_PATH_FIELDS = ("events_path", "plan_path")


def validate_plan_request(payload: dict[str, Any]) -> list[ValidationError]:
    """Validate plan_request with basic shape checks."""
    errors: list[ValidationError] = []

    for field in _REQUIRED_PATH_FIELDS:
        value = payload.get(field)
        if value is None:
            errors.append(
                ValidationError(
                    code="missing_field",
                    message=f"Missing required field: {field}",
                    path=f"$.{field}",
                )
            )
        elif not isinstance(value, str) or not value.strip():
            errors.append(
                ValidationError(
                    code="invalid_type",
                    message=f"Field must be a non-empty string path: {field}",
                    path=f"$.{field}",
                )
            )

    for field in _OPTIONAL_PATH_FIELDS:
        value = payload.get(field)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            errors.append(
                ValidationError(
                    code="invalid_type",
                    message=f"Field must be a non-empty string path: {field}",
                    path=f"$.{field}",
                )
            )

    now = payload.get("now")
    if now is not None:
        try:
            datetime.fromisoformat(str(now).replace("Z", "+00:00"))
        except ValueError:
            errors.append(
                ValidationError(
                    code="invalid_datetime",
                    message=f"Field must be an ISO-8601 date-time: now ({now!r})",
                    path="$.now",
                )
            )

    return errors
