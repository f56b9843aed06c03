"""Rule Engine - First-match evaluation of a step's business rules"""
import re
from typing import Dict, List, Optional

from ..domain.models import BusinessRule, RuleEvent, RuleOutcome, WorkflowStep
from ..domain.enums import RuleAction, RuleEventType
from ..domain.errors import InvalidExpressionError, UnknownFieldError
from .condition_evaluator import ConditionEvaluator
from ..utils.logger import get_logger

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_EVENT_ACTIONS = {
    RuleAction.NOTIFY_ADMIN: RuleEventType.NOTIFY_ADMIN,
    RuleAction.ESCALATE: RuleEventType.ESCALATE,
}


def label_identifier(label: Optional[str]) -> Optional[str]:
    """Turn a field label into a condition identifier ("Days pending" -> "Days_pending")"""
    if not label:
        return None
    candidate = re.sub(r"\s+", "_", label.strip())
    return candidate if _IDENTIFIER.fullmatch(candidate) else None


def build_context(form_data: Dict[str, str], step: Optional[WorkflowStep] = None) -> Dict[str, str]:
    """
    Build the evaluation context for a submission

    Blank values are left out so conditions on them fail as unknown fields.
    Labels of the step's fields are added as aliases of their keys, so authors
    may write ``Amount > 10`` for a field labelled "Amount" keyed ``field_1``.
    """
    context = {key: value for key, value in form_data.items() if value != ""}

    if step is not None:
        for field in step.form_fields:
            value = context.get(field.field_key)
            alias = label_identifier(field.label)
            if value is not None and alias and alias not in context:
                context[alias] = value

    return context


def _block_reason(rule: BusinessRule) -> str:
    reason = f"Submission rejected by rule: {rule.name}"
    if rule.description:
        reason += f". {rule.description}"
    return reason


def _pending_reason(rule: BusinessRule) -> str:
    reason = f"This submission requires approval (rule: {rule.name})."
    if rule.description:
        reason += f" {rule.description}"
    return reason


class RuleEngine:
    """
    Apply ordered business rules to a submission

    Rules run in ``rule_order``; the first rule whose condition holds decides
    the outcome and evaluation stops there:

    - REJECT -> BLOCK
    - REQUIRE_APPROVAL -> PENDING
    - AUTO_APPROVE / NOTIFY_ADMIN / ESCALATE -> PROCEED
      (NOTIFY_ADMIN and ESCALATE also attach a RuleEvent)

    A rule whose condition cannot be evaluated is treated as not triggered.
    """

    def __init__(self, evaluator: Optional[ConditionEvaluator] = None):
        self.evaluator = evaluator or ConditionEvaluator()

    def apply(
        self,
        rules: List[BusinessRule],
        context: Dict[str, str],
        approver_role: Optional[str] = None
    ) -> RuleOutcome:
        """
        Evaluate rules against a submission context

        Args:
            rules: Business rules of the step
            context: Evaluation context (see build_context)
            approver_role: Role reported with a PENDING outcome

        Returns:
            RuleOutcome for the first matching rule, PROCEED if none match
        """
        for rule in sorted(rules, key=lambda r: r.rule_order):
            if not self._is_triggered(rule, context):
                continue

            logger.info(
                f"Business rule matched: {rule.name} -> {rule.action_type.value}",
                extra={"rule_name": rule.name, "outcome": rule.action_type.value}
            )

            if rule.action_type == RuleAction.REJECT:
                return RuleOutcome.block(_block_reason(rule), rule_name=rule.name)

            if rule.action_type == RuleAction.REQUIRE_APPROVAL:
                return RuleOutcome.pending(approver_role, _pending_reason(rule), rule_name=rule.name)

            events = []
            event_type = _EVENT_ACTIONS.get(rule.action_type)
            if event_type:
                events.append(RuleEvent(
                    event_type=event_type,
                    rule_name=rule.name,
                    description=rule.description,
                ))
            return RuleOutcome.proceed(rule_name=rule.name, events=events)

        return RuleOutcome.proceed()

    def _is_triggered(self, rule: BusinessRule, context: Dict[str, str]) -> bool:
        try:
            return self.evaluator.evaluate(rule.condition_expression, context)
        except UnknownFieldError as e:
            logger.warning(
                f"Business rule '{rule.name}' skipped: {e.message}",
                extra={"rule_name": rule.name, "error_code": e.error_code}
            )
        except InvalidExpressionError as e:
            logger.error(
                f"Unevaluable business rule '{rule.name}' ({rule.condition_expression!r}): {e.message}",
                extra={"rule_name": rule.name, "error_code": e.error_code}
            )
        return False
