"""Step validation against the declarative catalogue in stratix.domain.steps.

Pure functions, no DB access. A failed validation is a result, never an
exception: callers render ``errors`` and ``warnings`` as-is.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from stratix.core.exceptions import InvalidArgumentError
from stratix.domain.steps import FieldType, StepField, get_step

_URL_RE = re.compile(r"^https?://.+")

URL_WARNING = "El sitio web debe incluir http:// o https://"


@dataclass
class ValidationResult:
    """Outcome of validating one step payload."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_ai_validation(self, validated_at: datetime | None = None) -> dict:
        """Serialize as the ``ai_validation`` sub-object stored on a progress row."""
        validated_at = validated_at or datetime.now(timezone.utc)
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "validated_at": validated_at.isoformat(),
        }


def unknown_step_message(step_number: int) -> str:
    return f"No existe un esquema de validación para el paso {step_number}"


def invalid_option_message(label: str) -> str:
    return f"Valor no válido para {label}"


def _is_blank(value: Any) -> bool:
    # Non-string values never satisfy a text field
    return not isinstance(value, str) or not value.strip()


def _check_field(spec: StepField, value: Any, errors: list[str], warnings: list[str]) -> None:
    missing = value is None or (isinstance(value, str) and not value.strip())

    if spec.must_equal is not None:
        if value != spec.must_equal:
            errors.append(spec.required_message)
        return

    if spec.type in (FieldType.TEXT, FieldType.TEXTAREA):
        if spec.required and _is_blank(value):
            errors.append(spec.required_message)
        elif spec.url and not missing and not _URL_RE.match(str(value)):
            warnings.append(URL_WARNING)
        return

    if spec.type == FieldType.SELECT:
        if missing:
            if spec.required:
                errors.append(spec.required_message)
            return
        if spec.options and value not in spec.option_values:
            errors.append(invalid_option_message(spec.label))
        return

    if spec.type == FieldType.MULTISELECT:
        if not isinstance(value, list) or not value:
            if spec.required:
                errors.append(spec.required_message)
            elif value not in (None, []):
                errors.append(invalid_option_message(spec.label))
            return
        if spec.options and any(item not in spec.option_values for item in value):
            errors.append(invalid_option_message(spec.label))
        return

    if spec.type == FieldType.NUMBER:
        if missing:
            if spec.required:
                errors.append(spec.required_message)
            return
        if isinstance(value, bool):
            warnings.append(f"{spec.label} debe ser un número")
            return
        try:
            number = float(value)
        except (TypeError, ValueError):
            warnings.append(f"{spec.label} debe ser un número")
            return
        if spec.min_value is not None and number < spec.min_value:
            warnings.append(f"{spec.label} debe ser al menos {spec.min_value}")
        elif spec.max_value is not None and number > spec.max_value:
            warnings.append(f"{spec.label} no puede ser mayor que {spec.max_value}")


def validate_step(step_number: int, step_data: Mapping[str, Any] | None) -> ValidationResult:
    """Validate a step payload.

    Args:
        step_number: 1-indexed step number
        step_data: Free-form field mapping submitted by the client

    Returns:
        ValidationResult. Unknown steps yield is_valid=False with a single
        error naming the step. Fields are checked in catalogue order, so
        errors come out in form order.

    Raises:
        InvalidArgumentError: If step_data is not a mapping
    """
    if step_data is None:
        step_data = {}
    if not isinstance(step_data, Mapping):
        raise InvalidArgumentError("step_data must be an object")

    step = get_step(step_number)
    if step is None:
        return ValidationResult(is_valid=False, errors=[unknown_step_message(step_number)])

    errors: list[str] = []
    warnings: list[str] = []
    for spec in step.fields:
        _check_field(spec, step_data.get(spec.name), errors, warnings)

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
