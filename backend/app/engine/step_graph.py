"""Step Graph - Navigate and validate the directed graph of workflow steps"""
import re
from typing import Dict, List, Optional, Set

from ..domain.models import (
    RuleOutcome, ValidationReport, WorkflowDefinition, WorkflowStep
)
from ..domain.enums import FormFieldType, StepType
from ..domain.errors import (
    DanglingStepError, StepNotFoundError, TransitionNotFoundError, WorkflowValidationError
)
from .condition_evaluator import ConditionEvaluator, parse, validate_expression
from .rule_engine import label_identifier
from ..utils.logger import get_logger

logger = get_logger(__name__)

_FIELD_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_OPTION_TYPES = (FormFieldType.SELECT, FormFieldType.RADIO)


class StepGraph:
    """
    Resolve transitions for a workflow definition

    Given current step S and a rule outcome:
    1. BLOCK / PENDING keep the instance on S
    2. PROCEED follows the first transition of S whose guard holds
       (a missing guard always holds)
    3. A target of type END is terminal -> None
    4. No transition applies -> TransitionNotFoundError
    """

    def __init__(self, definition: WorkflowDefinition, evaluator: Optional[ConditionEvaluator] = None):
        self.definition = definition
        self.evaluator = evaluator or ConditionEvaluator()
        self._steps: Dict[str, WorkflowStep] = {s.id: s for s in definition.steps}

    def get_step(self, step_id: str) -> WorkflowStep:
        step = self._steps.get(step_id)
        if step is None:
            raise StepNotFoundError(
                f"Step {step_id} not found in workflow {self.definition.id}",
                details={"step_id": step_id, "workflow_id": self.definition.id}
            )
        return step

    def start_step(self) -> WorkflowStep:
        starts = self.definition.steps_of_type(StepType.START)
        if len(starts) != 1:
            raise WorkflowValidationError(
                "Workflow must have exactly one START step",
                details={"workflow_id": self.definition.id, "start_steps": [s.id for s in starts]}
            )
        return starts[0]

    def initial_step_id(self) -> Optional[str]:
        """First actionable step: the START step's sole successor (None if it is END)"""
        start = self.start_step()
        if len(start.transitions) != 1:
            raise WorkflowValidationError(
                f"START step {start.id} must have exactly one transition target",
                details={"step_id": start.id, "targets": start.target_ids}
            )
        return self._resolve_target(start.transitions[0].target_step_id)

    def next_step(
        self,
        current_step_id: str,
        outcome: RuleOutcome,
        context: Dict[str, str]
    ) -> Optional[str]:
        """
        Resolve the step an instance moves to

        Args:
            current_step_id: Step the submission was made on
            outcome: Rule engine decision for the submission
            context: Evaluation context for transition guards

        Returns:
            Next step ID, the current step ID when the outcome does not
            advance, or None when an END step is reached

        Raises:
            TransitionNotFoundError: If no transition applies
        """
        current = self.get_step(current_step_id)
        if not outcome.advances:
            return current.id

        if current.type == StepType.END:
            return None

        for transition in current.transitions:
            if transition.guard and not self.evaluator.matches(transition.guard, context):
                continue

            logger.info(
                f"Resolved transition: {current.id} -> {transition.target_step_id}",
                extra={"step_id": current.id, "workflow_id": self.definition.id}
            )
            return self._resolve_target(transition.target_step_id)

        raise TransitionNotFoundError(
            f"No valid transition (conditions not met) from step {current.id}",
            details={
                "current_step_id": current.id,
                "candidates_count": len(current.transitions)
            }
        )

    def _resolve_target(self, target_step_id: str) -> Optional[str]:
        target = self.get_step(target_step_id)
        return None if target.type == StepType.END else target.id

    # =========================================================================
    # Publish-time validation
    # =========================================================================

    def validate(self) -> ValidationReport:
        """Validate the definition; returns errors and warnings"""
        report = ValidationReport()
        steps = self.definition.steps

        if not steps:
            report.error("EMPTY_STEPS", "Workflow must have at least one step", "steps")
            return report

        seen: Set[str] = set()
        for i, step in enumerate(steps):
            if step.id in seen:
                report.error("DUPLICATE_STEP_ID", f"Duplicate step id: {step.id}", f"steps[{i}].id")
            seen.add(step.id)

        starts = self.definition.steps_of_type(StepType.START)
        if not starts:
            report.error("NO_START", "Workflow must have a START step", "steps")
        elif len(starts) > 1:
            report.error(
                "MULTIPLE_START",
                f"Workflow must have exactly one START step, found {len(starts)}",
                "steps"
            )
        elif len(starts[0].transitions) != 1:
            report.error(
                "START_TARGETS",
                f"START step {starts[0].id} must have exactly one transition target",
                f"steps[{steps.index(starts[0])}].transitions"
            )

        if not self.definition.steps_of_type(StepType.END):
            report.error("NO_END", "Workflow must have at least one END step", "steps")

        known_fields = self._known_fields()
        for i, step in enumerate(steps):
            self._validate_step(step, i, report, known_fields)

        for i, rule in enumerate(self.definition.business_rules):
            self._check_expression(
                rule.condition_expression, f"business_rules[{i}].condition_expression",
                report, known_fields
            )

        if starts and not report.errors:
            self._validate_reachability(starts[0], report)

        return report

    def ensure_publishable(self) -> ValidationReport:
        """
        Validate and raise on errors

        Raises:
            DanglingStepError: If a non-END step has no outgoing transition
            WorkflowValidationError: For any other validation error
        """
        report = self.validate()
        if report.is_valid:
            return report

        errors = [issue.model_dump() for issue in report.errors]
        dangling = [issue for issue in report.errors if issue.type == "DANGLING_STEP"]
        if dangling:
            raise DanglingStepError(dangling[0].message, details={"errors": errors})
        raise WorkflowValidationError("Workflow validation failed", details={"errors": errors})

    def _validate_step(
        self,
        step: WorkflowStep,
        index: int,
        report: ValidationReport,
        known_fields: Set[str]
    ) -> None:
        path = f"steps[{index}]"

        if step.type == StepType.END:
            if step.transitions:
                report.warning(
                    "END_HAS_TARGETS",
                    f"END step {step.id} has transition targets that are never followed",
                    f"{path}.transitions"
                )
        elif not step.transitions:
            report.error(
                "DANGLING_STEP",
                f"Step {step.id} ({step.type.value}) has no transition target",
                f"{path}.transitions"
            )
        elif len(step.transitions) > 1 and step.type not in (StepType.CONDITION, StepType.START):
            report.warning(
                "AMBIGUOUS_TRANSITION",
                f"Step {step.id} has {len(step.transitions)} targets; the first matching one is taken",
                f"{path}.transitions"
            )

        for j, transition in enumerate(step.transitions):
            if transition.target_step_id not in self._steps:
                report.error(
                    "INVALID_TRANSITION_TO",
                    f"Step {step.id} references non-existent step: {transition.target_step_id}",
                    f"{path}.transitions[{j}].target_step_id"
                )
            self._check_expression(transition.guard, f"{path}.transitions[{j}].guard", report, known_fields)

        field_keys: Set[str] = set()
        for j, field in enumerate(step.form_fields):
            field_path = f"{path}.form_fields[{j}]"
            if not _FIELD_KEY.fullmatch(field.field_key or ""):
                report.error(
                    "INVALID_FIELD_KEY",
                    f"Field key {field.field_key!r} of step {step.id} is not a valid identifier",
                    f"{field_path}.field_key"
                )
            if field.field_key in field_keys:
                report.error(
                    "DUPLICATE_FIELD_KEY",
                    f"Duplicate field key {field.field_key!r} in step {step.id}",
                    f"{field_path}.field_key"
                )
            field_keys.add(field.field_key)

            if field.field_type in _OPTION_TYPES and not field.options:
                report.error(
                    "MISSING_OPTIONS",
                    f"{field.field_type.value} field {field.field_key!r} must declare options",
                    f"{field_path}.options"
                )
            if field.validation_regex:
                try:
                    re.compile(field.validation_regex)
                except re.error as e:
                    report.error(
                        "INVALID_PATTERN",
                        f"Validation pattern of field {field.field_key!r} does not compile: {e}",
                        f"{field_path}.validation_regex"
                    )

        for j, rule in enumerate(step.business_rules):
            self._check_expression(
                rule.condition_expression, f"{path}.business_rules[{j}].condition_expression",
                report, known_fields
            )

    def _check_expression(
        self,
        expression: Optional[str],
        path: str,
        report: ValidationReport,
        known_fields: Set[str]
    ) -> None:
        error = validate_expression(expression)
        if error:
            report.error("INVALID_EXPRESSION", error.message, path)
            return

        for field in sorted(parse(expression).fields - known_fields):
            report.warning(
                "UNKNOWN_CONDITION_FIELD",
                f"Condition references field {field!r} that no step declares",
                path
            )

    def _known_fields(self) -> Set[str]:
        known: Set[str] = set()
        for step in self.definition.steps:
            for field in step.form_fields:
                known.add(field.field_key)
                alias = label_identifier(field.label)
                if alias:
                    known.add(alias)
        return known

    def _validate_reachability(self, start: WorkflowStep, report: ValidationReport) -> None:
        reachable = self._find_reachable_steps(start.id)

        for step in self.definition.steps:
            if step.id not in reachable:
                report.warning("UNREACHABLE_STEP", f"Step {step.id} is not reachable from start")

        reaches_end = self._find_steps_reaching_end()
        for step_id in sorted(reachable - reaches_end):
            report.error(
                "NO_PATH_TO_END",
                f"Step {step_id} is reachable from start but can never reach an END step"
            )

    def _find_reachable_steps(self, start_step_id: str) -> Set[str]:
        """Find all steps reachable from start"""
        reachable = {start_step_id}
        to_visit = [start_step_id]

        while to_visit:
            current = self._steps[to_visit.pop()]
            if current.type == StepType.END:
                continue
            for target in current.target_ids:
                if target not in reachable:
                    reachable.add(target)
                    to_visit.append(target)

        return reachable

    def _find_steps_reaching_end(self) -> Set[str]:
        """Reverse search from END steps over followed edges"""
        predecessors: Dict[str, List[str]] = {}
        for step in self.definition.steps:
            if step.type == StepType.END:
                continue
            for target in step.target_ids:
                predecessors.setdefault(target, []).append(step.id)

        reaching = {s.id for s in self.definition.steps_of_type(StepType.END)}
        to_visit = list(reaching)
        while to_visit:
            for source in predecessors.get(to_visit.pop(), []):
                if source not in reaching:
                    reaching.add(source)
                    to_visit.append(source)

        return reaching
