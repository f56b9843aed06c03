"""Tests for first-match business rule evaluation."""

import pytest

from app.domain.enums import OutcomeKind, RuleAction, RuleEventType
from app.domain.models import BusinessRule, FormField, WorkflowStep
from app.engine.rule_engine import RuleEngine, build_context, label_identifier


def rule(name, condition, action, order=0, description=None) -> BusinessRule:
    return BusinessRule(
        name=name,
        condition_expression=condition,
        action_type=action,
        rule_order=order,
        description=description,
    )


@pytest.fixture
def engine() -> RuleEngine:
    return RuleEngine()


def test_no_rules_proceeds(engine) -> None:
    outcome = engine.apply([], {"amount": "5"})
    assert outcome.kind == OutcomeKind.PROCEED
    assert outcome.rule_name is None
    assert outcome.events == []


def test_no_matching_rule_proceeds(engine) -> None:
    outcome = engine.apply([rule("Big", "amount > 100", RuleAction.REJECT)], {"amount": "5"})
    assert outcome.kind == OutcomeKind.PROCEED


def test_reject_blocks_with_reason(engine) -> None:
    rules = [rule("Hard limit", "amount > 10000", RuleAction.REJECT, description="Too expensive")]
    outcome = engine.apply(rules, {"amount": "20000"})
    assert outcome.kind == OutcomeKind.BLOCK
    assert outcome.rule_name == "Hard limit"
    assert outcome.reason == "Submission rejected by rule: Hard limit. Too expensive"
    assert not outcome.advances


def test_require_approval_is_pending(engine) -> None:
    rules = [rule("Manager approval", "amount > 1000", RuleAction.REQUIRE_APPROVAL, description="Ask a manager")]
    outcome = engine.apply(rules, {"amount": "5000"}, approver_role="FINANCE_MANAGER")
    assert outcome.kind == OutcomeKind.PENDING
    assert outcome.approver_role == "FINANCE_MANAGER"
    assert outcome.reason == "This submission requires approval (rule: Manager approval). Ask a manager"


def test_first_match_by_rule_order_not_list_order(engine) -> None:
    rules = [
        rule("Second", "amount > 0", RuleAction.REJECT, order=2),
        rule("First", "amount > 0", RuleAction.AUTO_APPROVE, order=1),
    ]
    outcome = engine.apply(rules, {"amount": "10"})
    assert outcome.kind == OutcomeKind.PROCEED
    assert outcome.rule_name == "First"


def test_rules_are_not_cumulative(engine) -> None:
    rules = [
        rule("Notify", "amount > 0", RuleAction.NOTIFY_ADMIN, order=1),
        rule("Reject", "amount > 0", RuleAction.REJECT, order=2),
    ]
    outcome = engine.apply(rules, {"amount": "10"})
    assert outcome.kind == OutcomeKind.PROCEED
    assert [event.rule_name for event in outcome.events] == ["Notify"]


@pytest.mark.parametrize(
    "action, event_type",
    [(RuleAction.NOTIFY_ADMIN, RuleEventType.NOTIFY_ADMIN), (RuleAction.ESCALATE, RuleEventType.ESCALATE)],
)
def test_event_actions_proceed_with_event(engine, action, event_type) -> None:
    outcome = engine.apply([rule("Heads up", "", action, description="Look at this")], {})
    assert outcome.kind == OutcomeKind.PROCEED
    assert len(outcome.events) == 1
    event = outcome.events[0]
    assert event.event_type == event_type
    assert event.rule_name == "Heads up"
    assert event.description == "Look at this"
    assert event.event_id.startswith("NTF-")


def test_auto_approve_proceeds_without_event(engine) -> None:
    outcome = engine.apply([rule("Small", "amount < 100", RuleAction.AUTO_APPROVE)], {"amount": "5"})
    assert outcome.kind == OutcomeKind.PROCEED
    assert outcome.rule_name == "Small"
    assert outcome.events == []


def test_empty_condition_always_matches(engine) -> None:
    outcome = engine.apply([rule("Always", "", RuleAction.REJECT)], {})
    assert outcome.kind == OutcomeKind.BLOCK


def test_unknown_field_rule_is_skipped(engine) -> None:
    rules = [
        rule("Broken", "missing > 5", RuleAction.REJECT, order=1),
        rule("Fallback", "amount > 1", RuleAction.REQUIRE_APPROVAL, order=2),
    ]
    outcome = engine.apply(rules, {"amount": "10"})
    assert outcome.kind == OutcomeKind.PENDING
    assert outcome.rule_name == "Fallback"


def test_unevaluable_rule_is_skipped(engine) -> None:
    rules = [rule("Bad value", "amount > 5", RuleAction.REJECT)]
    outcome = engine.apply(rules, {"amount": "lots"})
    assert outcome.kind == OutcomeKind.PROCEED


def test_build_context_drops_blank_values() -> None:
    context = build_context({"amount": "10", "note": ""})
    assert context == {"amount": "10"}


def test_build_context_adds_label_aliases() -> None:
    step = WorkflowStep(
        id="s1",
        name="Request",
        form_fields=[
            FormField(label="Total Amount", field_key="field_1"),
            FormField(label="Reason (why)", field_key="field_2"),
            FormField(label="field_1", field_key="field_3"),
        ],
    )
    context = build_context({"field_1": "10", "field_2": "trip", "field_3": "x"}, step)
    assert context["Total_Amount"] == "10"
    # Labels that are not identifiers get no alias
    assert "Reason (why)" not in context
    # An alias never overrides a real key
    assert context["field_1"] == "10"


def test_label_alias_usable_in_rules(engine) -> None:
    step = WorkflowStep(id="s1", name="Request", form_fields=[FormField(label="Amount", field_key="f1")])
    context = build_context({"f1": "500"}, step)
    outcome = engine.apply([rule("Label rule", "Amount > 100", RuleAction.REJECT)], context)
    assert outcome.kind == OutcomeKind.BLOCK


@pytest.mark.parametrize(
    "label, expected",
    [("Amount", "Amount"), ("Days pending", "Days_pending"), ("  Cost  ", "Cost"), ("1st", None), ("", None), (None, None)],
)
def test_label_identifier(label, expected) -> None:
    assert label_identifier(label) == expected
