"""
Pytest Configuration and Fixtures

Shared fixtures for all tests: a sample expense workflow, a published
version of it, and an in-memory MongoDB (mongomock) behind the repositories.
"""

import os

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("ENVIRONMENT", "test")

import copy
from typing import Any, Dict

import mongomock
import pytest
from fastapi.testclient import TestClient

from app.domain.models import WorkflowDefinition, WorkflowInstance, WorkflowVersion
from app.repositories import mongo_client

from .factories import EXPENSE_WORKFLOW, make_definition, make_version


@pytest.fixture
def expense_payload() -> Dict[str, Any]:
    """Sample workflow as a designer would send it"""
    return copy.deepcopy(EXPENSE_WORKFLOW)


@pytest.fixture
def expense_definition() -> WorkflowDefinition:
    return make_definition()


@pytest.fixture
def expense_version(expense_definition) -> WorkflowVersion:
    return make_version(expense_definition)


@pytest.fixture
def running_instance(expense_version) -> WorkflowInstance:
    """Instance waiting on the expense request step"""
    return WorkflowInstance(
        id="INST-test",
        workflow_id=expense_version.workflow_id,
        workflow_version_id=expense_version.workflow_version_id,
        current_step_id="request",
    )


@pytest.fixture
def mongo_db(monkeypatch):
    """In-memory database behind every repository"""
    db = mongomock.MongoClient()["workflow_engine_test"]
    monkeypatch.setattr(mongo_client, "_database", db)
    return db


@pytest.fixture
def client(mongo_db) -> TestClient:
    from app.main import app
    return TestClient(app)
