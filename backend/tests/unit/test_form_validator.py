"""Tests for form field validation."""

import pytest

from app.domain.enums import FormFieldType
from app.domain.errors import ValidationError
from app.domain.models import FormField, WorkflowStep
from app.engine.form_validator import FIELD_VALIDATORS, validate_field, validate_submission


def field(field_type=FormFieldType.TEXT, required=False, **extra) -> FormField:
    return FormField(label="Value", field_key="value", field_type=field_type, required=required, **extra)


def test_every_field_type_has_a_validator() -> None:
    assert set(FIELD_VALIDATORS) == set(FormFieldType)


@pytest.mark.parametrize("value", [None, "", "   "])
def test_required_field_missing(value) -> None:
    assert validate_field(field(required=True), value) == "Value is required"


def test_optional_empty_field_is_accepted() -> None:
    assert validate_field(field(FormFieldType.NUMBER), "") is None


@pytest.mark.parametrize(
    "field_type, value, ok",
    [
        (FormFieldType.NUMBER, "42", True),
        (FormFieldType.NUMBER, "-3.5", True),
        (FormFieldType.NUMBER, "1e3", True),
        (FormFieldType.NUMBER, "abc", False),
        (FormFieldType.NUMBER, "nan", False),
        (FormFieldType.EMAIL, "jane.doe@acme.com", True),
        (FormFieldType.EMAIL, "not-an-email", False),
        (FormFieldType.DATE, "2024-05-01", True),
        (FormFieldType.DATE, "2024-05-01T10:30:00Z", True),
        (FormFieldType.DATE, "someday", False),
        (FormFieldType.DATE, "9999-12-31T23:00:00-05:00", False),
        (FormFieldType.DATE, "0001-01-01T01:00:00+05:00", False),
        (FormFieldType.CHECKBOX, "false", True),
        (FormFieldType.CHECKBOX, "TRUE", True),
        (FormFieldType.CHECKBOX, "yes", False),
        (FormFieldType.TEXTAREA, "anything at all", True),
        (FormFieldType.FILE, "receipt.pdf", True),
    ],
)
def test_type_checks(field_type, value, ok) -> None:
    assert (validate_field(field(field_type), value) is None) is ok


@pytest.mark.parametrize("field_type", [FormFieldType.SELECT, FormFieldType.RADIO])
def test_option_fields(field_type) -> None:
    f = field(field_type, options=["LOW", "HIGH"])
    assert validate_field(f, "HIGH") is None
    assert validate_field(f, "MEDIUM") == "Value must be one of: LOW, HIGH"


def test_required_checkbox_must_be_true() -> None:
    f = field(FormFieldType.CHECKBOX, required=True)
    assert validate_field(f, "true") is None
    assert validate_field(f, "false") == "Value is required"
    assert validate_field(f, None) == "Value is required"


def test_validation_regex_must_fully_match() -> None:
    f = field(validation_regex=r"[A-Z]{3}-\d+")
    assert validate_field(f, "ABC-12") is None
    assert validate_field(f, "ABC-12x") == "Value format is invalid"


def test_regex_applies_after_type_check() -> None:
    f = field(FormFieldType.NUMBER, validation_regex=r"\d{4}")
    assert validate_field(f, "12") == "Value format is invalid"
    assert validate_field(f, "abcd") == "Value must be a valid number"


@pytest.fixture
def request_step(expense_definition) -> WorkflowStep:
    return expense_definition.get_step("request")


def test_valid_submission(request_step) -> None:
    validate_submission(request_step, {"amount": "100", "category": "TRAVEL", "email": "a.b@acme.com"})


def test_submission_collects_every_error(request_step) -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_submission(request_step, {"amount": "lots", "email": "nope"})

    error = exc_info.value
    assert error.fields == ["amount", "category", "email"]
    assert error.details["field_errors"]["amount"] == "Amount must be a valid number"
    assert error.details["field_errors"]["category"] == "Category is required"
    assert error.http_status == 400


def test_unknown_keys_are_rejected(request_step) -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_submission(request_step, {"amount": "1", "category": "OTHER", "bogus": "x"})
    assert exc_info.value.fields == ["bogus"]


def test_previous_data_satisfies_required_fields(request_step) -> None:
    validate_submission(request_step, {}, previous={"amount": "5000", "category": "TRAVEL"})

    with pytest.raises(ValidationError) as exc_info:
        validate_submission(request_step, {"amount": ""}, previous={"amount": "5000", "category": "TRAVEL"})
    assert exc_info.value.fields == ["amount"]
