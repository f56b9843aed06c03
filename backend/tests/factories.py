"""Builders for workflow definitions and published versions used across tests"""
import copy
from typing import Any, Dict, Optional

from app.domain.enums import WorkflowStatus
from app.domain.models import WorkflowDefinition, WorkflowVersion
from app.utils.time import utc_now


EXPENSE_WORKFLOW: Dict[str, Any] = {
    "name": "Expense Approval",
    "description": "Employee expense request with category routing",
    "steps": [
        {
            "id": "start",
            "name": "Start",
            "type": "START",
            "stepOrder": 0,
            "transitions": [{"targetStepId": "request"}],
        },
        {
            "id": "request",
            "name": "Expense Request",
            "type": "TASK",
            "stepOrder": 1,
            "assignedRoleId": "FINANCE_MANAGER",
            "formFields": [
                {"label": "Amount", "fieldKey": "amount", "fieldType": "NUMBER", "required": True, "fieldOrder": 1},
                {
                    "label": "Category",
                    "fieldKey": "category",
                    "fieldType": "SELECT",
                    "required": True,
                    "options": ["TRAVEL", "EQUIPMENT", "OTHER"],
                    "fieldOrder": 2,
                },
                {"label": "Contact email", "fieldKey": "email", "fieldType": "EMAIL", "fieldOrder": 3},
            ],
            "businessRules": [
                {
                    "name": "Hard limit",
                    "description": "Expenses above 10000 are not allowed",
                    "conditionExpression": "amount > 10000",
                    "actionType": "REJECT",
                    "ruleOrder": 1,
                },
                {
                    "name": "Manager approval",
                    "conditionExpression": "amount > 1000",
                    "actionType": "REQUIRE_APPROVAL",
                    "ruleOrder": 2,
                },
                {
                    "name": "Equipment notice",
                    "description": "Equipment purchases are reported to IT",
                    "conditionExpression": "category == 'EQUIPMENT'",
                    "actionType": "NOTIFY_ADMIN",
                    "ruleOrder": 3,
                },
            ],
            "transitions": [{"targetStepId": "route"}],
        },
        {
            "id": "route",
            "name": "Route by category",
            "type": "CONDITION",
            "stepOrder": 2,
            "transitions": [
                {"targetStepId": "travel_review", "guard": "category == 'TRAVEL'"},
                {"targetStepId": "done"},
            ],
        },
        {
            "id": "travel_review",
            "name": "Travel review",
            "type": "APPROVAL",
            "stepOrder": 3,
            "formFields": [
                {"label": "Approved", "fieldKey": "approved", "fieldType": "CHECKBOX", "required": True},
            ],
            "transitions": [{"targetStepId": "done"}],
        },
        {"id": "done", "name": "Done", "type": "END", "stepOrder": 4},
    ],
}


def make_definition(payload: Optional[Dict[str, Any]] = None, **overrides) -> WorkflowDefinition:
    data = copy.deepcopy(payload or EXPENSE_WORKFLOW)
    data.update(overrides)
    return WorkflowDefinition.model_validate(data)


def make_version(definition: WorkflowDefinition, version_number: int = 1) -> WorkflowVersion:
    published = definition.model_copy(update={
        "id": definition.id or "WF-test",
        "status": WorkflowStatus.PUBLISHED,
        "current_version": version_number,
    })
    return WorkflowVersion(
        workflow_version_id=f"WFV-test-{version_number}",
        workflow_id=published.id,
        version_number=version_number,
        definition=published,
        published_at=utc_now(),
    )
