"""Workflow Repository - Data access for workflows and versions"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection
from ..domain.models import WorkflowDefinition, WorkflowVersion
from ..domain.enums import WorkflowStatus
from ..domain.errors import (
    ConflictError, ConcurrencyError, VersionNotFoundError, WorkflowNotFoundError
)
from ..utils.time import format_iso, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowRepository:
    """Repository for workflow drafts and published versions"""

    def __init__(self):
        self._workflows: Collection = get_collection("workflows")
        self._versions: Collection = get_collection("workflow_versions")

    # =========================================================================
    # Workflow CRUD
    # =========================================================================

    def create_workflow(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        """Create a new workflow"""
        doc = workflow.model_dump(mode="json")
        doc["_id"] = workflow.id

        try:
            self._workflows.insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError(f"Workflow {workflow.id} already exists")

        logger.info(f"Created workflow: {workflow.id}", extra={"workflow_id": workflow.id})
        return workflow

    def get_workflow(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        """Get workflow by ID"""
        doc = self._workflows.find_one({"id": workflow_id})
        if doc:
            doc.pop("_id", None)
            return WorkflowDefinition.model_validate(doc)
        return None

    def get_workflow_or_raise(self, workflow_id: str) -> WorkflowDefinition:
        """Get workflow by ID or raise error"""
        workflow = self.get_workflow(workflow_id)
        if not workflow:
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        return workflow

    def update_workflow(
        self,
        workflow_id: str,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> WorkflowDefinition:
        """
        Update workflow with optimistic concurrency

        Args:
            workflow_id: Workflow ID
            updates: Fields to update (JSON-ready values)
            expected_version: Expected version for optimistic lock
        """
        updates = dict(updates)
        updates["updated_at"] = format_iso(utc_now())

        filter_query: Dict[str, Any] = {"id": workflow_id}
        if expected_version is not None:
            filter_query["version"] = expected_version
            updates["version"] = expected_version + 1

        result = self._workflows.find_one_and_update(
            filter_query,
            {"$set": updates},
            return_document=True
        )

        if result is None:
            if expected_version is not None:
                exists = self._workflows.find_one({"id": workflow_id})
                if exists:
                    raise ConcurrencyError(
                        f"Workflow {workflow_id} was modified. Please refresh and try again.",
                        details={"expected_version": expected_version, "current_version": exists.get("version")}
                    )
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )

        result.pop("_id", None)
        logger.info(f"Updated workflow: {workflow_id}", extra={"workflow_id": workflow_id})
        return WorkflowDefinition.model_validate(result)

    def list_workflows(
        self,
        status: Optional[WorkflowStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowDefinition]:
        """List workflows, most recently updated first"""
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status.value

        cursor = self._workflows.find(query).sort("updated_at", DESCENDING).skip(skip).limit(limit)

        workflows = []
        for doc in cursor:
            doc.pop("_id", None)
            workflows.append(WorkflowDefinition.model_validate(doc))
        return workflows

    def count_workflows(self, status: Optional[WorkflowStatus] = None) -> int:
        """Count workflows with optional status filter"""
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status.value
        return self._workflows.count_documents(query)

    def delete_workflow(self, workflow_id: str) -> bool:
        """Delete workflow"""
        result = self._workflows.delete_one({"id": workflow_id})
        return result.deleted_count > 0

    # =========================================================================
    # Workflow Version Operations
    # =========================================================================

    def create_version(self, version: WorkflowVersion) -> WorkflowVersion:
        """Create a new workflow version"""
        doc = version.model_dump(mode="json")
        doc["_id"] = version.workflow_version_id

        try:
            self._versions.insert_one(doc)
        except DuplicateKeyError:
            raise ConcurrencyError(
                f"Version {version.version_number} of workflow {version.workflow_id} already exists",
                details={"workflow_id": version.workflow_id, "version_number": version.version_number}
            )

        logger.info(
            f"Created workflow version: {version.workflow_version_id}",
            extra={"workflow_id": version.workflow_id, "workflow_version_id": version.workflow_version_id}
        )
        return version

    def get_version(self, workflow_version_id: str) -> Optional[WorkflowVersion]:
        """Get version by ID"""
        doc = self._versions.find_one({"workflow_version_id": workflow_version_id})
        if doc:
            doc.pop("_id", None)
            return WorkflowVersion.model_validate(doc)
        return None

    def get_version_or_raise(self, workflow_version_id: str) -> WorkflowVersion:
        """Get version by ID or raise error"""
        version = self.get_version(workflow_version_id)
        if not version:
            raise VersionNotFoundError(
                f"Workflow version {workflow_version_id} not found",
                details={"workflow_version_id": workflow_version_id}
            )
        return version

    def get_latest_version(self, workflow_id: str) -> Optional[WorkflowVersion]:
        """Get latest published version for workflow"""
        doc = self._versions.find_one(
            {"workflow_id": workflow_id},
            sort=[("version_number", DESCENDING)]
        )
        if doc:
            doc.pop("_id", None)
            return WorkflowVersion.model_validate(doc)
        return None

    def get_version_by_number(self, workflow_id: str, version_number: int) -> Optional[WorkflowVersion]:
        """Get specific version by number"""
        doc = self._versions.find_one({
            "workflow_id": workflow_id,
            "version_number": version_number
        })
        if doc:
            doc.pop("_id", None)
            return WorkflowVersion.model_validate(doc)
        return None

    def list_versions(
        self,
        workflow_id: str,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowVersion]:
        """List all versions for a workflow, newest first"""
        cursor = (
            self._versions.find({"workflow_id": workflow_id})
            .sort("version_number", DESCENDING)
            .skip(skip)
            .limit(limit)
        )

        versions = []
        for doc in cursor:
            doc.pop("_id", None)
            versions.append(WorkflowVersion.model_validate(doc))
        return versions

    def get_next_version_number(self, workflow_id: str) -> int:
        """Get next version number for workflow"""
        latest = self.get_latest_version(workflow_id)
        return (latest.version_number + 1) if latest else 1

    def delete_version(self, workflow_version_id: str) -> bool:
        """Delete a version that was never made current"""
        result = self._versions.delete_one({"workflow_version_id": workflow_version_id})
        if result.deleted_count:
            logger.info(
                f"Deleted workflow version: {workflow_version_id}",
                extra={"workflow_version_id": workflow_version_id}
            )
        return result.deleted_count > 0
