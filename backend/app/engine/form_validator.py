"""Form Validator - Check submitted values against a step's form fields"""
import math
import re
from typing import Callable, Dict, List, Optional

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..domain.models import FormField, WorkflowStep
from ..domain.enums import FormFieldType
from ..domain.errors import ValidationError
from ..utils.time import parse_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)

_EMAIL_ADAPTER = TypeAdapter(EmailStr)

# Returns an error message, or None when the value is acceptable
FieldCheck = Callable[[FormField, str], Optional[str]]


def _check_free_text(field: FormField, value: str) -> Optional[str]:
    return None


def _check_number(field: FormField, value: str) -> Optional[str]:
    try:
        number = float(value.strip())
    except ValueError:
        return f"{field.label} must be a valid number"
    if math.isnan(number) or math.isinf(number):
        return f"{field.label} must be a valid number"
    return None


def _check_email(field: FormField, value: str) -> Optional[str]:
    try:
        _EMAIL_ADAPTER.validate_python(value.strip())
    except PydanticValidationError:
        return f"{field.label} must be a valid email address"
    return None


def _check_date(field: FormField, value: str) -> Optional[str]:
    try:
        parse_iso(value.strip())
    except ValueError:
        return f"{field.label} must be a valid date (YYYY-MM-DD)"
    return None


def _check_option(field: FormField, value: str) -> Optional[str]:
    if value not in field.options:
        return f"{field.label} must be one of: {', '.join(field.options)}"
    return None


def _check_checkbox(field: FormField, value: str) -> Optional[str]:
    if value.lower() not in ("true", "false"):
        return f"{field.label} must be true or false"
    return None


FIELD_VALIDATORS: Dict[FormFieldType, FieldCheck] = {
    FormFieldType.TEXT: _check_free_text,
    FormFieldType.TEXTAREA: _check_free_text,
    FormFieldType.FILE: _check_free_text,
    FormFieldType.NUMBER: _check_number,
    FormFieldType.EMAIL: _check_email,
    FormFieldType.DATE: _check_date,
    FormFieldType.SELECT: _check_option,
    FormFieldType.RADIO: _check_option,
    FormFieldType.CHECKBOX: _check_checkbox,
}


def validate_field(field: FormField, value: Optional[str]) -> Optional[str]:
    """Validate a single value; returns the error message or None"""
    is_empty = value is None or value.strip() == ""

    if field.field_type == FormFieldType.CHECKBOX and field.required:
        if is_empty or value.strip().lower() != "true":
            return f"{field.label} is required"
        return None

    if is_empty:
        return f"{field.label} is required" if field.required else None

    error = FIELD_VALIDATORS[field.field_type](field, value)
    if error:
        return error

    if field.validation_regex:
        try:
            if not re.fullmatch(field.validation_regex, value):
                return f"{field.label} format is invalid"
        except re.error:
            logger.warning(f"Invalid regex pattern for field {field.field_key}: {field.validation_regex}")

    return None


def validate_submission(
    step: WorkflowStep,
    form_data: Dict[str, str],
    previous: Optional[Dict[str, str]] = None
) -> None:
    """
    Validate a submission against the fields of a step

    Args:
        step: Step the submission is made on
        form_data: Normalized submitted values
        previous: Data already held by the instance; satisfies required
            fields the submission leaves out

    Raises:
        ValidationError: details carry ``fields`` (offending keys) and
            ``field_errors`` (key -> message)
    """
    declared = {field.field_key: field for field in step.form_fields}
    field_errors: Dict[str, str] = {}

    for key in form_data:
        if key not in declared:
            field_errors[key] = f"Field '{key}' is not part of step {step.name}"

    values = {**(previous or {}), **form_data}
    for field in step.ordered_fields():
        error = validate_field(field, values.get(field.field_key))
        if error:
            field_errors[field.field_key] = error

    if field_errors:
        fields: List[str] = list(field_errors)
        logger.info(
            f"Form validation failed for step {step.id}: {fields}",
            extra={"step_id": step.id, "details": field_errors}
        )
        raise ValidationError(
            "Form validation failed: " + "; ".join(field_errors.values()),
            details={"fields": fields, "field_errors": field_errors}
        )


def canonicalize_submission(step: WorkflowStep, form_data: Dict[str, str]) -> Dict[str, str]:
    """Submitted values as they are stored; checkbox values are lowercased"""
    checkboxes = {f.field_key for f in step.form_fields if f.field_type == FormFieldType.CHECKBOX}
    return {
        key: value.strip().lower() if key in checkboxes else value
        for key, value in form_data.items()
    }
