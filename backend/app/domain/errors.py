"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, List, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Condition Language Errors
class ConditionError(DomainError):
    """Condition expression could not be evaluated"""
    error_code = "CONDITION_ERROR"


class InvalidExpressionError(ConditionError):
    """Condition expression is malformed or not comparable"""
    error_code = "INVALID_EXPRESSION"

    def __init__(self, message: str, expression: Optional[str] = None, position: Optional[int] = None):
        details: Dict[str, Any] = {}
        if expression is not None:
            details["expression"] = expression
        if position is not None:
            details["position"] = position
        super().__init__(message, details=details)
        self.expression = expression
        self.position = position


class UnknownFieldError(ConditionError):
    """Condition references a field absent from the context"""
    error_code = "UNKNOWN_FIELD"

    def __init__(self, field: str, expression: Optional[str] = None):
        super().__init__(
            f"Field '{field}' is not present in the submitted data",
            details={"field": field, "expression": expression}
        )
        self.field = field


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400

    @property
    def fields(self) -> List[str]:
        """Offending field keys"""
        return list(self.details.get("fields", []))


class WorkflowValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


class DanglingStepError(WorkflowValidationError):
    """A non-END step has no outgoing transition"""
    error_code = "DANGLING_STEP"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class WorkflowNotFoundError(NotFoundError):
    """Workflow not found"""
    error_code = "WORKFLOW_NOT_FOUND"


class VersionNotFoundError(NotFoundError):
    """Published workflow version not found"""
    error_code = "VERSION_NOT_FOUND"


class InstanceNotFoundError(NotFoundError):
    """Workflow instance not found"""
    error_code = "INSTANCE_NOT_FOUND"


class StepNotFoundError(NotFoundError):
    """Step not found in definition"""
    error_code = "STEP_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class StaleInstanceError(ConcurrencyError):
    """Instance changed since the caller read it"""
    error_code = "STALE_INSTANCE"


class InvalidStateError(ConflictError):
    """Action not valid for current state"""
    error_code = "INVALID_STATE"


class NoPublishedVersionError(ConflictError):
    """Workflow has no published version to start"""
    error_code = "NO_PUBLISHED_VERSION"


# Engine Errors
class EngineError(DomainError):
    """Workflow engine error"""
    error_code = "ENGINE_ERROR"
    http_status = 500


class TransitionNotFoundError(EngineError):
    """No valid transition found from the current step"""
    error_code = "TRANSITION_NOT_FOUND"
    http_status = 400
