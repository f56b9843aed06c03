"""Tests for domain model parsing and serialization."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.domain.enums import FormFieldType, RuleAction, StepType
from app.domain.models import BusinessRule, FormField, WorkflowInstance, WorkflowStep, normalize_form_data


def test_legacy_transition_targets_string() -> None:
    step = WorkflowStep.model_validate({"id": "a", "name": "A", "transitionTargets": "b, c,,"})
    assert step.target_ids == ["b", "c"]
    assert all(t.guard is None for t in step.transitions)


def test_explicit_transitions_win_over_legacy_targets() -> None:
    step = WorkflowStep.model_validate({
        "id": "a",
        "name": "A",
        "transitions": [{"targetStepId": "x", "guard": "n > 1"}],
        "transitionTargets": "b,c",
    })
    assert step.target_ids == ["x"]


def test_transition_targets_are_serialized_for_older_clients() -> None:
    step = WorkflowStep.model_validate({
        "id": "a",
        "name": "A",
        "transitions": [{"targetStepId": "b"}, {"targetStepId": "c"}],
    })
    dumped = step.model_dump(by_alias=True)
    assert dumped["transitionTargets"] == "b,c"
    assert dumped["transitions"][0]["targetStepId"] == "b"


def test_dumped_step_validates_back() -> None:
    step = WorkflowStep.model_validate({"id": "a", "name": "A", "transitionTargets": "b"})
    again = WorkflowStep.model_validate(step.model_dump(by_alias=True))
    assert again == step


def test_step_defaults() -> None:
    step = WorkflowStep(id="a", name="A")
    assert step.type == StepType.TASK
    assert step.transitions == []
    assert step.assigned_role_id is None


def test_numeric_ids_are_coerced_to_strings() -> None:
    step = WorkflowStep.model_validate({"id": 7, "name": "Seven", "transitionTargets": [8, 9]})
    assert step.id == "7"
    assert step.target_ids == ["8", "9"]


@pytest.mark.parametrize(
    "options, expected",
    [
        ('["LOW", "HIGH"]', ["LOW", "HIGH"]),
        ("LOW, HIGH", ["LOW", "HIGH"]),
        ("", []),
        (None, []),
        (["A", 1], ["A", "1"]),
    ],
)
def test_field_options_parsing(options, expected) -> None:
    field = FormField.model_validate({"label": "L", "fieldKey": "k", "options": options})
    assert field.options == expected


def test_field_type_defaults_to_text() -> None:
    assert FormField.model_validate({"label": "L", "fieldKey": "k", "fieldType": None}).field_type == FormFieldType.TEXT


def test_unknown_field_type_is_rejected() -> None:
    with pytest.raises(PydanticValidationError):
        FormField.model_validate({"label": "L", "fieldKey": "k", "fieldType": "COLOR"})


def test_business_rule_null_defaults() -> None:
    rule = BusinessRule.model_validate({"name": None, "conditionExpression": None, "actionType": "REJECT"})
    assert rule.name == "Rule"
    assert rule.condition_expression == ""
    assert rule.action_type == RuleAction.REJECT


def test_ordered_fields() -> None:
    step = WorkflowStep.model_validate({
        "id": "a",
        "name": "A",
        "formFields": [
            {"label": "Second", "fieldKey": "b", "fieldOrder": 2},
            {"label": "First", "fieldKey": "a", "fieldOrder": 1},
        ],
    })
    assert [f.field_key for f in step.ordered_fields()] == ["a", "b"]


def test_form_data_normalization() -> None:
    assert normalize_form_data({"n": 5, "ok": True, "no": False, "none": None, "tags": ["a", "b"]}) == {
        "n": "5", "ok": "true", "no": "false", "none": "", "tags": "a,b"
    }
    assert normalize_form_data(None) == {}


def test_instance_form_data_is_normalized() -> None:
    instance = WorkflowInstance(id="i", workflow_id="w", workflow_version_id="v", form_data={"amount": 12.5})
    assert instance.form_data == {"amount": "12.5"}
    assert not instance.is_terminal


def test_instance_dumps_camel_case() -> None:
    instance = WorkflowInstance(id="i", workflow_id="w", workflow_version_id="v", current_step_id="s")
    dumped = instance.model_dump(by_alias=True, mode="json")
    assert dumped["currentStepId"] == "s"
    assert dumped["workflowVersionId"] == "v"
    assert dumped["status"] == "IN_PROGRESS"


def test_published_version_is_immutable(expense_version) -> None:
    with pytest.raises(PydanticValidationError):
        expense_version.version_number = 2


def test_definition_helpers(expense_definition) -> None:
    assert [s.id for s in expense_definition.steps_of_type(StepType.END)] == ["done"]
    assert expense_definition.get_step("missing") is None
    assert [s.id for s in expense_definition.ordered_steps()][0] == "start"
