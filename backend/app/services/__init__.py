"""Service modules - Business logic layer"""
from .workflow_service import WorkflowService
from .instance_service import InstanceService

__all__ = [
    "WorkflowService",
    "InstanceService",
]
