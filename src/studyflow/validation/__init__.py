"""Validation helpers."""

from .errors import TaskValidationError
from .errors import ValidationError
from .errors import ValidationReport
from .domain_validator import validate_domain_inputs
from .request import validate_plan_request
from .schema_validator import validate_inputs_with_schema
from .tasks import build_task, validate_task_payload

__all__ = [
    "TaskValidationError",
    "ValidationError",
    "ValidationReport",
    "build_task",
    "validate_domain_inputs",
    "validate_inputs_with_schema",
    "validate_plan_request",
    "validate_task_payload",
]
