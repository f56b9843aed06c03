"""End-to-end API tests through the FastAPI app with an in-memory MongoDB."""

from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

API = "/api/v1"


def publish(client: TestClient, payload: Dict[str, Any]) -> str:
    created = client.post(f"{API}/workflows", json=payload)
    assert created.status_code == 201
    workflow_id = created.json()["id"]
    published = client.post(f"{API}/workflows/{workflow_id}/publish")
    assert published.status_code == 200
    return workflow_id


def start(client: TestClient, workflow_id: str) -> Dict[str, Any]:
    response = client.post(f"{API}/instances", json={"workflowId": workflow_id})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def workflow_id(client, expense_payload) -> str:
    return publish(client, expense_payload)


# ============================================================================
# Workflows
# ============================================================================

def test_root(client) -> None:
    body = client.get("/").json()
    assert body["name"] == "Workflow Execution Engine"


def test_create_workflow_uses_camel_case(client, expense_payload) -> None:
    response = client.post(f"{API}/workflows", json=expense_payload)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "DRAFT"
    request_step = body["steps"][1]
    assert request_step["assignedRoleId"] == "FINANCE_MANAGER"
    assert request_step["formFields"][0]["fieldKey"] == "amount"
    assert request_step["businessRules"][0]["conditionExpression"] == "amount > 10000"
    assert request_step["transitionTargets"] == "route"


def test_create_workflow_requires_name(client) -> None:
    response = client.post(f"{API}/workflows", json={"steps": []})

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "name" in error["details"]["fields"]


def test_save_draft_returns_validation_report(client, expense_payload) -> None:
    workflow_id = client.post(f"{API}/workflows", json=expense_payload).json()["id"]

    response = client.put(
        f"{API}/workflows/{workflow_id}",
        json={"name": "Half done", "steps": [{"id": "start", "name": "Start", "type": "START"}], "expectedVersion": 1},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["workflow"]["name"] == "Half done"
    assert body["workflow"]["version"] == 2
    assert body["validation"]["is_valid"] is False
    assert "NO_END" in [issue["type"] for issue in body["validation"]["errors"]]


def test_save_draft_with_stale_version(client, expense_payload) -> None:
    workflow_id = client.post(f"{API}/workflows", json=expense_payload).json()["id"]
    client.put(f"{API}/workflows/{workflow_id}", json={**expense_payload, "expectedVersion": 1})

    response = client.put(f"{API}/workflows/{workflow_id}", json={**expense_payload, "expectedVersion": 1})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONCURRENCY_CONFLICT"


def test_publish_invalid_workflow(client) -> None:
    workflow_id = client.post(f"{API}/workflows", json={
        "name": "Dangling",
        "steps": [
            {"id": "start", "name": "Start", "type": "START", "transitionTargets": "work"},
            {"id": "work", "name": "Work"},
            {"id": "end", "name": "End", "type": "END"},
        ],
    }).json()["id"]

    response = client.post(f"{API}/workflows/{workflow_id}/publish")

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "DANGLING_STEP"
    assert error["details"]["errors"][0]["path"] == "steps[1].transitions"


def test_workflow_lifecycle_endpoints(client, workflow_id) -> None:
    versions = client.get(f"{API}/workflows/{workflow_id}/versions").json()["items"]
    assert [v["versionNumber"] for v in versions] == [1]

    version = client.get(f"{API}/workflows/{workflow_id}/versions/1").json()
    assert version["definition"]["status"] == "PUBLISHED"

    assert client.delete(f"{API}/workflows/{workflow_id}").status_code == 409
    assert client.post(f"{API}/workflows/{workflow_id}/draft").json()["status"] == "DRAFT"
    assert client.post(f"{API}/workflows/{workflow_id}/validate").json()["is_valid"] is True
    assert client.post(f"{API}/workflows/{workflow_id}/archive").json()["status"] == "ARCHIVED"

    listing = client.get(f"{API}/workflows", params={"status": "ARCHIVED"}).json()
    assert listing["total"] == 1
    assert listing["pageSize"] == 20

    assert client.delete(f"{API}/workflows/{workflow_id}").status_code == 204
    assert client.get(f"{API}/workflows/{workflow_id}").status_code == 404


def test_unknown_workflow_is_404(client) -> None:
    response = client.get(f"{API}/workflows/WF-missing")

    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "WORKFLOW_NOT_FOUND"
    assert error["details"]["workflow_id"] == "WF-missing"


# ============================================================================
# Instances
# ============================================================================

def test_full_run_through_travel_review(client, workflow_id) -> None:
    instance = start(client, workflow_id)
    assert instance["currentStepId"] == "request"
    assert instance["status"] == "IN_PROGRESS"
    instance_id = instance["id"]

    first = client.post(f"{API}/instances/{instance_id}/submit", json={
        "formData": {"amount": 450, "category": "TRAVEL"},
        "expectedStepId": "request",
        "expectedVersion": 1,
    })
    assert first.status_code == 200
    assert first.json()["outcome"]["kind"] == "PROCEED"
    assert first.json()["instance"]["currentStepId"] == "route"

    second = client.post(f"{API}/instances/{instance_id}/submit", json={"formData": {}})
    assert second.json()["instance"]["currentStepId"] == "travel_review"

    third = client.post(f"{API}/instances/{instance_id}/submit", json={"formData": {"approved": True}})
    body = third.json()["instance"]
    assert body["status"] == "COMPLETED"
    assert body["currentStepId"] is None
    assert body["formData"] == {"amount": "450", "category": "TRAVEL", "approved": "true"}

    stored = client.get(f"{API}/instances/{instance_id}").json()
    assert stored["version"] == 4


def test_blocked_submission_is_a_successful_response(client, workflow_id) -> None:
    instance_id = start(client, workflow_id)["id"]

    response = client.post(f"{API}/instances/{instance_id}/submit", json={
        "formData": {"amount": 25000, "category": "OTHER"}
    })

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"]["kind"] == "BLOCK"
    assert body["outcome"]["ruleName"] == "Hard limit"
    assert body["instance"]["currentStepId"] == "request"


def test_pending_approval_then_release(client, workflow_id) -> None:
    instance_id = start(client, workflow_id)["id"]

    pending = client.post(f"{API}/instances/{instance_id}/submit", json={
        "formData": {"amount": 3000, "category": "OTHER"}
    }).json()
    assert pending["outcome"]["kind"] == "PENDING"
    assert pending["outcome"]["approverRole"] == "FINANCE_MANAGER"
    assert pending["instance"]["pendingApprovalRole"] == "FINANCE_MANAGER"

    released = client.post(f"{API}/instances/{instance_id}/submit", json={
        "formData": {}, "approvedByRole": "FINANCE_MANAGER"
    }).json()
    assert released["outcome"]["kind"] == "PROCEED"
    assert released["instance"]["currentStepId"] == "route"


def test_invalid_form_data_lists_fields(client, workflow_id) -> None:
    instance_id = start(client, workflow_id)["id"]

    response = client.post(f"{API}/instances/{instance_id}/submit", json={
        "formData": {"amount": "many", "category": "FOOD"}
    })

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["fields"] == ["amount", "category"]


def test_stale_step_is_conflict(client, workflow_id) -> None:
    instance_id = start(client, workflow_id)["id"]

    response = client.post(f"{API}/instances/{instance_id}/submit", json={
        "formData": {"amount": 5, "category": "OTHER"}, "expectedStepId": "travel_review"
    })

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "STALE_INSTANCE"


def test_start_unpublished_workflow(client, expense_payload) -> None:
    workflow_id = client.post(f"{API}/workflows", json=expense_payload).json()["id"]

    response = client.post(f"{API}/instances", json={"workflowId": workflow_id})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "NO_PUBLISHED_VERSION"


def test_cancel_and_list(client, workflow_id) -> None:
    instance_id = start(client, workflow_id)["id"]
    start(client, workflow_id)

    cancelled = client.post(f"{API}/instances/{instance_id}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"

    again = client.post(f"{API}/instances/{instance_id}/cancel", json={"expectedVersion": 2})
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "INVALID_STATE"

    listing = client.get(f"{API}/instances", params={"workflow_id": workflow_id, "status": "CANCELLED"}).json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == instance_id


def test_notifications_endpoint(client, workflow_id) -> None:
    instance_id = start(client, workflow_id)["id"]
    client.post(f"{API}/instances/{instance_id}/submit", json={
        "formData": {"amount": 99, "category": "EQUIPMENT"}
    })

    items = client.get(f"{API}/instances/{instance_id}/notifications").json()["items"]
    assert len(items) == 1
    assert items[0]["eventType"] == "NOTIFY_ADMIN"
    assert items[0]["ruleName"] == "Equipment notice"
    assert items[0]["stepId"] == "request"


def test_unknown_instance_is_404(client) -> None:
    response = client.get(f"{API}/instances/INST-missing")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "INSTANCE_NOT_FOUND"


def test_correlation_id_is_echoed(client) -> None:
    response = client.get(f"{API}/instances/INST-missing", headers={"X-Correlation-Id": "COR-test-1"})
    assert response.headers["X-Correlation-Id"] == "COR-test-1"

    generated = client.get("/")
    assert generated.headers["X-Correlation-Id"]
