"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection
from .workflow_repo import WorkflowRepository
from .instance_repo import InstanceRepository
from .notification_repo import NotificationRepository

__all__ = [
    "get_database",
    "get_collection",
    "WorkflowRepository",
    "InstanceRepository",
    "NotificationRepository",
]
