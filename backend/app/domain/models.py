"""Domain Models - Pydantic schemas for all entities"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .enums import (
    WorkflowStatus, StepType, FormFieldType, RuleAction, OutcomeKind,
    InstanceStatus, RuleEventType, NotificationStatus
)
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now


def normalize_form_value(value: Any) -> str:
    """Render a submitted value the way it is stored in instance form data"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(normalize_form_value(v) for v in value)
    return str(value)


def normalize_form_data(values: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Normalize a submitted form-data map to string -> string"""
    return {str(key): normalize_form_value(value) for key, value in (values or {}).items()}


class ApiModel(BaseModel):
    """Base model: snake_case attributes, camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )


# ============================================================================
# Form Field & Business Rule
# ============================================================================

class FormField(ApiModel):
    """Form field definition"""

    label: str = Field(..., description="Display label")
    field_key: str = Field(..., description="Key of the value in submitted form data")
    field_type: FormFieldType = Field(default=FormFieldType.TEXT)
    required: bool = Field(default=False)
    placeholder: Optional[str] = None
    options: List[str] = Field(default_factory=list, description="Options for SELECT/RADIO")
    validation_regex: Optional[str] = Field(None, description="Pattern the whole value must match")
    field_order: int = Field(default=0, description="Display order")

    @field_validator("field_type", mode="before")
    @classmethod
    def _default_field_type(cls, value: Any) -> Any:
        return FormFieldType.TEXT if value is None else value

    @field_validator("options", mode="before")
    @classmethod
    def _parse_options(cls, value: Any) -> Any:
        """Accept a list, a JSON array string or a comma-separated string"""
        if value is None:
            return []
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return []
            if text.startswith("["):
                try:
                    parsed = json.loads(text)
                except json.JSONDecodeError:
                    parsed = None
                if isinstance(parsed, list):
                    return [normalize_form_value(option) for option in parsed]
            return [option.strip() for option in text.split(",") if option.strip()]
        if isinstance(value, list):
            return [normalize_form_value(option) for option in value]
        return value


class BusinessRule(ApiModel):
    """Condition -> action pair evaluated against submitted data"""

    name: str = Field(default="Rule")
    description: Optional[str] = None
    condition_expression: str = Field(default="", description="Empty means unconditional")
    action_type: RuleAction
    rule_order: int = Field(default=0, description="Evaluation order within the step")

    @field_validator("name", "condition_expression", mode="before")
    @classmethod
    def _none_to_default(cls, value: Any, info) -> Any:
        if value is None:
            return "Rule" if info.field_name == "name" else ""
        return value


# ============================================================================
# Steps & Transitions
# ============================================================================

class Transition(ApiModel):
    """Directed edge to a candidate next step, optionally guarded"""

    target_step_id: str
    guard: Optional[str] = Field(None, description="Condition expression; empty means always taken")


class WorkflowStep(ApiModel):
    """A node in the workflow graph"""

    id: str = Field(..., description="Step ID, unique within the definition")
    name: str = Field(..., description="Display name")
    description: Optional[str] = None
    type: StepType = Field(default=StepType.TASK)
    step_order: int = Field(default=0)
    assigned_role_id: Optional[str] = Field(None, description="Role expected to act (advisory)")
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    transitions: List[Transition] = Field(default_factory=list)
    form_fields: List[FormField] = Field(default_factory=list)
    business_rules: List[BusinessRule] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _legacy_transition_targets(cls, data: Any) -> Any:
        """Build unguarded transitions from a comma-separated transitionTargets string"""
        if not isinstance(data, dict) or data.get("transitions"):
            return data
        targets = data.get("transitionTargets", data.get("transition_targets"))
        if isinstance(targets, str):
            targets = targets.split(",")
        if isinstance(targets, list):
            data = dict(data)
            data["transitions"] = [
                {"target_step_id": str(target).strip()}
                for target in targets
                if str(target).strip()
            ]
        return data

    @computed_field(alias="transitionTargets")
    @property
    def transition_targets(self) -> str:
        """Comma-separated target ids, as older clients expect"""
        return ",".join(t.target_step_id for t in self.transitions)

    @property
    def target_ids(self) -> List[str]:
        return [t.target_step_id for t in self.transitions]

    def ordered_fields(self) -> List[FormField]:
        return sorted(self.form_fields, key=lambda f: f.field_order)


# ============================================================================
# Workflow Definition & Version
# ============================================================================

class WorkflowDefinition(ApiModel):
    """Authored workflow template (editable while DRAFT)"""

    id: Optional[str] = Field(None, description="Workflow ID")
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: WorkflowStatus = Field(default=WorkflowStatus.DRAFT)
    steps: List[WorkflowStep] = Field(default_factory=list)
    business_rules: List[BusinessRule] = Field(
        default_factory=list,
        description="Deprecated workflow-level rules, used only for steps without rules"
    )
    version: int = Field(default=1, description="Optimistic concurrency version")
    current_version: Optional[int] = Field(None, description="Latest published version number")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def ordered_steps(self) -> List[WorkflowStep]:
        return sorted(self.steps, key=lambda s: s.step_order)

    def get_step(self, step_id: Optional[str]) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def steps_of_type(self, step_type: StepType) -> List[WorkflowStep]:
        return [s for s in self.steps if s.type == step_type]


class WorkflowVersion(ApiModel):
    """Published workflow version (immutable snapshot)"""
    model_config = ConfigDict(frozen=True)

    workflow_version_id: str
    workflow_id: str
    version_number: int
    definition: WorkflowDefinition
    published_at: datetime


# ============================================================================
# Runtime Models
# ============================================================================

class WorkflowInstance(ApiModel):
    """One running execution of a published workflow version"""

    id: str
    workflow_id: str
    workflow_version_id: str
    workflow_name: Optional[str] = None
    current_step_id: Optional[str] = Field(None, description="None once terminal")
    status: InstanceStatus = Field(default=InstanceStatus.IN_PROGRESS)
    form_data: Dict[str, str] = Field(default_factory=dict, description="Accumulated data by field key")
    pending_approval_role: Optional[str] = Field(None, description="Set while a REQUIRE_APPROVAL rule holds the step")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    version: int = Field(default=1, description="Optimistic concurrency version")

    @field_validator("form_data", mode="before")
    @classmethod
    def _normalize_form_data(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return normalize_form_data(value)
        return value

    @property
    def is_terminal(self) -> bool:
        return self.status != InstanceStatus.IN_PROGRESS


class RuleEvent(ApiModel):
    """Notification payload emitted by NOTIFY_ADMIN / ESCALATE rules"""

    event_id: str = Field(default_factory=generate_notification_id)
    event_type: RuleEventType
    rule_name: str
    description: Optional[str] = None
    workflow_id: Optional[str] = None
    instance_id: Optional[str] = None
    step_id: Optional[str] = None
    status: NotificationStatus = Field(default=NotificationStatus.PENDING)
    created_at: datetime = Field(default_factory=utc_now)


class RuleOutcome(ApiModel):
    """Rule engine decision for one submission"""

    kind: OutcomeKind
    reason: Optional[str] = None
    approver_role: Optional[str] = None
    rule_name: Optional[str] = None
    events: List[RuleEvent] = Field(default_factory=list)

    @classmethod
    def proceed(cls, rule_name: Optional[str] = None, events: Optional[List[RuleEvent]] = None) -> "RuleOutcome":
        return cls(kind=OutcomeKind.PROCEED, rule_name=rule_name, events=events or [])

    @classmethod
    def block(cls, reason: str, rule_name: Optional[str] = None) -> "RuleOutcome":
        return cls(kind=OutcomeKind.BLOCK, reason=reason, rule_name=rule_name)

    @classmethod
    def pending(cls, approver_role: Optional[str], reason: str, rule_name: Optional[str] = None) -> "RuleOutcome":
        return cls(kind=OutcomeKind.PENDING, approver_role=approver_role, reason=reason, rule_name=rule_name)

    @property
    def advances(self) -> bool:
        return self.kind == OutcomeKind.PROCEED


class SubmissionResult(ApiModel):
    """Updated instance plus the decision that produced it"""

    instance: WorkflowInstance
    outcome: RuleOutcome


# ============================================================================
# Validation Report
# ============================================================================

class ValidationIssue(BaseModel):
    """Single publish-time validation finding"""

    type: str
    message: str
    path: Optional[str] = None


class ValidationReport(BaseModel):
    """Errors block publishing; warnings do not"""

    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @computed_field
    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, type: str, message: str, path: Optional[str] = None) -> None:
        self.errors.append(ValidationIssue(type=type, message=message, path=path))

    def warning(self, type: str, message: str, path: Optional[str] = None) -> None:
        self.warnings.append(ValidationIssue(type=type, message=message, path=path))

    def error_types(self) -> List[str]:
        return [issue.type for issue in self.errors]

    def warning_types(self) -> List[str]:
        return [issue.type for issue in self.warnings]
