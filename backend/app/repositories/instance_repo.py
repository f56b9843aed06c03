"""Instance Repository - Data access for workflow instances"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import get_collection
from ..domain.models import WorkflowInstance
from ..domain.enums import InstanceStatus
from ..domain.errors import InstanceNotFoundError, StaleInstanceError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InstanceRepository:
    """Repository for workflow instance operations"""

    def __init__(self):
        self._instances: Collection = get_collection("workflow_instances")

    def create_instance(self, instance: WorkflowInstance) -> WorkflowInstance:
        """Persist a newly started instance"""
        doc = instance.model_dump(mode="json")
        doc["_id"] = instance.id

        self._instances.insert_one(doc)
        logger.info(
            f"Created instance: {instance.id}",
            extra={"instance_id": instance.id, "workflow_id": instance.workflow_id}
        )
        return instance

    def get_instance(self, instance_id: str) -> Optional[WorkflowInstance]:
        """Get instance by ID"""
        doc = self._instances.find_one({"id": instance_id})
        if doc:
            doc.pop("_id", None)
            return WorkflowInstance.model_validate(doc)
        return None

    def get_instance_or_raise(self, instance_id: str) -> WorkflowInstance:
        """Get instance by ID or raise error"""
        instance = self.get_instance(instance_id)
        if not instance:
            raise InstanceNotFoundError(
                f"Instance {instance_id} not found",
                details={"instance_id": instance_id}
            )
        return instance

    def save_instance(self, instance: WorkflowInstance, expected_version: int) -> WorkflowInstance:
        """
        Replace the stored instance state with optimistic concurrency

        Args:
            instance: New instance state (its version already incremented)
            expected_version: Version the caller read

        Raises:
            StaleInstanceError: If the stored version differs
            InstanceNotFoundError: If the instance does not exist
        """
        doc = instance.model_dump(mode="json")

        result = self._instances.find_one_and_update(
            {"id": instance.id, "version": expected_version},
            {"$set": doc},
            return_document=True
        )

        if result is None:
            exists = self._instances.find_one({"id": instance.id})
            if exists:
                raise StaleInstanceError(
                    f"Instance {instance.id} was modified. Please refresh and try again.",
                    details={
                        "instance_id": instance.id,
                        "expected_version": expected_version,
                        "current_version": exists.get("version")
                    }
                )
            raise InstanceNotFoundError(
                f"Instance {instance.id} not found",
                details={"instance_id": instance.id}
            )

        result.pop("_id", None)
        logger.info(
            f"Updated instance: {instance.id}",
            extra={"instance_id": instance.id, "status": instance.status.value}
        )
        return WorkflowInstance.model_validate(result)

    def list_instances(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[InstanceStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowInstance]:
        """List instances, most recently updated first"""
        query = self._build_query(workflow_id, status)
        cursor = self._instances.find(query).sort("updated_at", DESCENDING).skip(skip).limit(limit)

        instances = []
        for doc in cursor:
            doc.pop("_id", None)
            instances.append(WorkflowInstance.model_validate(doc))
        return instances

    def count_instances(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[InstanceStatus] = None
    ) -> int:
        """Count instances with optional filters"""
        return self._instances.count_documents(self._build_query(workflow_id, status))

    @staticmethod
    def _build_query(workflow_id: Optional[str], status: Optional[InstanceStatus]) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if workflow_id:
            query["workflow_id"] = workflow_id
        if status:
            query["status"] = status.value
        return query
