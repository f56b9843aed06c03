"""
Workflow Engine - The Brain of the System

This module contains the WorkflowEngine class that drives workflow instances
through the steps of a published workflow version.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. INITIALIZATION
   - Constructor with rule engine and limits from settings

2. INSTANCE CREATION
   - start: Create an instance at the START step's successor

3. ACTION HANDLERS
   - submit: Validate, merge, apply business rules, transition
   - cancel: Cancel a running instance

4. HELPERS
   - _rules_for_step: Step rules, or legacy workflow-level rules
   - _check_data_size: Accumulated form data limit
   - _stamp_events: Attach instance/workflow/step ids to rule events

=============================================================================
CONTRACT
=============================================================================

The engine holds no state and performs no I/O. Every operation returns a new
WorkflowInstance; the instance passed in is never modified. Persisting the
result and the rule events is the caller's job (see InstanceService).

=============================================================================
"""

from typing import Any, Dict, List, Optional

from ..config.settings import settings
from ..domain.models import (
    RuleEvent, RuleOutcome, SubmissionResult, WorkflowInstance, WorkflowStep,
    WorkflowVersion, BusinessRule, normalize_form_data
)
from ..domain.enums import InstanceStatus, OutcomeKind, WorkflowStatus
from ..domain.errors import (
    InvalidStateError, NoPublishedVersionError, StaleInstanceError, ValidationError
)
from .form_validator import canonicalize_submission, validate_submission
from .rule_engine import RuleEngine, build_context
from .step_graph import StepGraph
from ..utils.idgen import generate_instance_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowEngine:
    """
    The Workflow Engine - State machine for workflow instances

    States: IN_PROGRESS -> COMPLETED | CANCELLED

    Responsibilities:
    - Create instances from published workflow versions
    - Validate submissions against the current step's form fields
    - Apply the step's business rules and resolve the next step
    - Emit rule events for the notification outbox
    """

    def __init__(
        self,
        rule_engine: Optional[RuleEngine] = None,
        max_form_data_chars: Optional[int] = None,
        legacy_rules_enabled: Optional[bool] = None
    ):
        self.rule_engine = rule_engine or RuleEngine()
        self.max_form_data_chars = (
            settings.max_form_data_chars if max_form_data_chars is None else max_form_data_chars
        )
        self.legacy_rules_enabled = (
            settings.legacy_workflow_rules_enabled if legacy_rules_enabled is None else legacy_rules_enabled
        )

    # =========================================================================
    # Instance creation
    # =========================================================================

    def start(self, version: WorkflowVersion, instance_id: Optional[str] = None) -> WorkflowInstance:
        """
        Start a new instance of a published workflow version

        Raises:
            NoPublishedVersionError: If the snapshot is not PUBLISHED
            WorkflowValidationError: If the START step is malformed
        """
        definition = version.definition
        if definition.status != WorkflowStatus.PUBLISHED:
            raise NoPublishedVersionError(
                f"Workflow {version.workflow_id} version {version.version_number} is not published",
                details={"workflow_id": version.workflow_id, "status": definition.status.value}
            )

        first_step_id = StepGraph(definition, self.rule_engine.evaluator).initial_step_id()
        now = utc_now()

        instance = WorkflowInstance(
            id=instance_id or generate_instance_id(),
            workflow_id=version.workflow_id,
            workflow_version_id=version.workflow_version_id,
            workflow_name=definition.name,
            current_step_id=first_step_id,
            status=InstanceStatus.IN_PROGRESS if first_step_id else InstanceStatus.COMPLETED,
            created_at=now,
            updated_at=now,
            completed_at=None if first_step_id else now,
        )

        logger.info(
            f"Started instance {instance.id} at step {first_step_id}",
            extra={
                "instance_id": instance.id,
                "workflow_id": version.workflow_id,
                "workflow_version_id": version.workflow_version_id,
                "step_id": first_step_id,
                "status": instance.status.value
            }
        )
        return instance

    # =========================================================================
    # Action handlers
    # =========================================================================

    def submit(
        self,
        version: WorkflowVersion,
        instance: WorkflowInstance,
        form_data: Optional[Dict[str, Any]],
        expected_step_id: Optional[str] = None,
        approved_by_role: Optional[str] = None,
        outbox: Optional[List[RuleEvent]] = None
    ) -> SubmissionResult:
        """
        Submit form data for the instance's current step

        Args:
            version: Version snapshot the instance runs on
            instance: Current instance state (not modified)
            form_data: Submitted values keyed by field key
            expected_step_id: Step the caller believes is current
            approved_by_role: Role vouched for by the caller; releases a
                REQUIRE_APPROVAL hold when it matches the step's role
            outbox: Receives rule events emitted by the submission

        Returns:
            SubmissionResult with the updated instance and the rule outcome

        Raises:
            InvalidStateError: If the instance is not IN_PROGRESS
            StaleInstanceError: If expected_step_id is not the current step
            ValidationError: If the form data is invalid or too large
            TransitionNotFoundError: If no transition applies
        """
        if instance.status != InstanceStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Instance {instance.id} is {instance.status.value}",
                details={"instance_id": instance.id, "status": instance.status.value}
            )

        if expected_step_id is not None and expected_step_id != instance.current_step_id:
            raise StaleInstanceError(
                f"Instance {instance.id} is at step {instance.current_step_id}, not {expected_step_id}",
                details={
                    "instance_id": instance.id,
                    "expected_step_id": expected_step_id,
                    "current_step_id": instance.current_step_id
                }
            )

        graph = StepGraph(version.definition, self.rule_engine.evaluator)
        step = graph.get_step(instance.current_step_id)

        submitted = normalize_form_data(form_data)
        validate_submission(step, submitted, previous=instance.form_data)
        submitted = canonicalize_submission(step, submitted)

        merged = {**instance.form_data, **submitted}
        self._check_data_size(merged)

        context = build_context(merged, step)
        outcome = self.rule_engine.apply(
            self._rules_for_step(version, step), context, approver_role=step.assigned_role_id
        )

        if outcome.kind == OutcomeKind.PENDING and self._is_approved(step, approved_by_role):
            logger.info(
                f"Approval by role {approved_by_role} releases rule {outcome.rule_name}",
                extra={"instance_id": instance.id, "step_id": step.id, "rule_name": outcome.rule_name}
            )
            outcome = RuleOutcome.proceed(rule_name=outcome.rule_name)

        next_step_id = graph.next_step(step.id, outcome, context)

        now = utc_now()
        updates: Dict[str, Any] = {
            "form_data": merged,
            "updated_at": now,
            "version": instance.version + 1,
            "pending_approval_role": (
                outcome.approver_role if outcome.kind == OutcomeKind.PENDING else None
            ),
        }
        if outcome.advances and next_step_id is None:
            updates.update(
                status=InstanceStatus.COMPLETED,
                current_step_id=None,
                completed_at=now,
            )
        else:
            updates["current_step_id"] = next_step_id

        updated = instance.model_copy(update=updates, deep=True)

        events = self._stamp_events(outcome.events, updated, step)
        if outbox is not None:
            outbox.extend(events)
        outcome = outcome.model_copy(update={"events": events})

        logger.info(
            f"Submission on step {step.id}: {outcome.kind.value} -> {updated.current_step_id or updated.status.value}",
            extra={
                "instance_id": instance.id,
                "workflow_id": instance.workflow_id,
                "step_id": step.id,
                "outcome": outcome.kind.value,
                "rule_name": outcome.rule_name,
                "status": updated.status.value
            }
        )
        return SubmissionResult(instance=updated, outcome=outcome)

    def cancel(self, instance: WorkflowInstance) -> WorkflowInstance:
        """
        Cancel a running instance

        Raises:
            InvalidStateError: If the instance is not IN_PROGRESS
        """
        if instance.status != InstanceStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Cannot cancel instance {instance.id} in status {instance.status.value}",
                details={"instance_id": instance.id, "status": instance.status.value}
            )

        now = utc_now()
        cancelled = instance.model_copy(
            update={
                "status": InstanceStatus.CANCELLED,
                "current_step_id": None,
                "pending_approval_role": None,
                "updated_at": now,
                "completed_at": now,
                "version": instance.version + 1,
            },
            deep=True
        )

        logger.info(
            f"Cancelled instance {instance.id}",
            extra={"instance_id": instance.id, "step_id": instance.current_step_id}
        )
        return cancelled

    # =========================================================================
    # Helpers
    # =========================================================================

    def _rules_for_step(self, version: WorkflowVersion, step: WorkflowStep) -> List[BusinessRule]:
        if step.business_rules:
            return step.business_rules
        if self.legacy_rules_enabled and version.definition.business_rules:
            logger.debug(
                f"Step {step.id} has no rules; using workflow-level rules",
                extra={"workflow_id": version.workflow_id, "step_id": step.id}
            )
            return version.definition.business_rules
        return []

    @staticmethod
    def _is_approved(step: WorkflowStep, approved_by_role: Optional[str]) -> bool:
        if not approved_by_role:
            return False
        return step.assigned_role_id is None or step.assigned_role_id == approved_by_role

    def _check_data_size(self, form_data: Dict[str, str]) -> None:
        size = sum(len(key) + len(value) for key, value in form_data.items())
        if size > self.max_form_data_chars:
            raise ValidationError(
                f"Form data exceeds maximum size of {self.max_form_data_chars} characters",
                details={"fields": [], "size": size, "limit": self.max_form_data_chars}
            )

    @staticmethod
    def _stamp_events(
        events: List[RuleEvent],
        instance: WorkflowInstance,
        step: WorkflowStep
    ) -> List[RuleEvent]:
        return [
            event.model_copy(update={
                "workflow_id": instance.workflow_id,
                "instance_id": instance.id,
                "step_id": step.id,
            })
            for event in events
        ]
