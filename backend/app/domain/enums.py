"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class WorkflowStatus(str, Enum):
    """Workflow definition status"""
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class StepType(str, Enum):
    """Types of workflow steps"""
    START = "START"
    TASK = "TASK"
    APPROVAL = "APPROVAL"
    NOTIFICATION = "NOTIFICATION"
    CONDITION = "CONDITION"  # Branches on per-transition guard expressions
    END = "END"


class FormFieldType(str, Enum):
    """Supported form field types"""
    TEXT = "TEXT"
    TEXTAREA = "TEXTAREA"
    NUMBER = "NUMBER"
    EMAIL = "EMAIL"
    DATE = "DATE"
    SELECT = "SELECT"
    RADIO = "RADIO"
    CHECKBOX = "CHECKBOX"
    FILE = "FILE"  # Stores the uploaded file name


class RuleAction(str, Enum):
    """Action taken when a business rule condition matches"""
    REQUIRE_APPROVAL = "REQUIRE_APPROVAL"
    NOTIFY_ADMIN = "NOTIFY_ADMIN"
    AUTO_APPROVE = "AUTO_APPROVE"
    REJECT = "REJECT"
    ESCALATE = "ESCALATE"


class OutcomeKind(str, Enum):
    """Rule engine decision for a submission"""
    PROCEED = "PROCEED"
    BLOCK = "BLOCK"
    PENDING = "PENDING"


class InstanceStatus(str, Enum):
    """Workflow instance lifecycle status"""
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RuleEventType(str, Enum):
    """Side-effect events emitted by business rules"""
    NOTIFY_ADMIN = "NOTIFY_ADMIN"
    ESCALATE = "ESCALATE"


class NotificationStatus(str, Enum):
    """Notification outbox status"""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class ComparisonOperator(str, Enum):
    """Operators of the condition language"""
    GREATER_THAN = ">"
    LESS_THAN = "<"
    GREATER_THAN_OR_EQUALS = ">="
    LESS_THAN_OR_EQUALS = "<="
    EQUALS = "=="
    NOT_EQUALS = "!="

    @property
    def is_ordering(self) -> bool:
        return self not in (ComparisonOperator.EQUALS, ComparisonOperator.NOT_EQUALS)


class LogicalConnector(str, Enum):
    """Connectors between condition clauses"""
    AND = "AND"
    OR = "OR"
