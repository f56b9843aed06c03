"""Workflow Service - Workflow management business logic"""
from typing import List, Optional, Tuple

from ..domain.models import ValidationReport, WorkflowDefinition, WorkflowVersion
from ..domain.enums import WorkflowStatus
from ..domain.errors import (
    ConcurrencyError, InvalidStateError, NoPublishedVersionError, VersionNotFoundError
)
from ..engine.step_graph import StepGraph
from ..repositories.workflow_repo import WorkflowRepository
from ..utils.idgen import generate_workflow_id, generate_workflow_version_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowService:
    """Service for workflow operations"""

    def __init__(self):
        self.repo = WorkflowRepository()

    def create_workflow(self, draft: WorkflowDefinition) -> WorkflowDefinition:
        """Create a new workflow (draft)"""
        now = utc_now()

        workflow = draft.model_copy(update={
            "id": generate_workflow_id(),
            "status": WorkflowStatus.DRAFT,
            "version": 1,
            "current_version": None,
            "created_at": now,
            "updated_at": now,
        })

        return self.repo.create_workflow(workflow)

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Get workflow by ID"""
        return self.repo.get_workflow_or_raise(workflow_id)

    def list_workflows(
        self,
        status: Optional[WorkflowStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowDefinition]:
        """List workflows"""
        return self.repo.list_workflows(status=status, skip=skip, limit=limit)

    def count_workflows(self, status: Optional[WorkflowStatus] = None) -> int:
        """Count workflows"""
        return self.repo.count_workflows(status=status)

    def save_draft(
        self,
        workflow_id: str,
        draft: WorkflowDefinition,
        expected_version: Optional[int] = None
    ) -> Tuple[WorkflowDefinition, ValidationReport]:
        """
        Save workflow draft definition

        Returns:
            Tuple of (updated workflow, validation report)

        Raises:
            InvalidStateError: If the workflow is not a DRAFT
            ConcurrencyError: If expected_version is stale
        """
        workflow = self.repo.get_workflow_or_raise(workflow_id)
        self._require_status(workflow, WorkflowStatus.DRAFT, "edit")

        validation = StepGraph(draft).validate()

        payload = draft.model_dump(mode="json", include={"name", "description", "steps", "business_rules"})
        updated = self.repo.update_workflow(
            workflow_id=workflow_id,
            updates=payload,
            expected_version=workflow.version if expected_version is None else expected_version
        )

        logger.info(
            f"Saved draft of workflow {workflow_id} (valid={validation.is_valid})",
            extra={"workflow_id": workflow_id}
        )
        return updated, validation

    def validate_workflow(self, workflow_id: str) -> ValidationReport:
        """Validate the stored definition without publishing"""
        workflow = self.repo.get_workflow_or_raise(workflow_id)
        return StepGraph(workflow).validate()

    def publish_workflow(self, workflow_id: str) -> WorkflowVersion:
        """
        Publish workflow as immutable version

        Raises:
            InvalidStateError: If the workflow is not a DRAFT
            DanglingStepError: If a non-END step has no transition
            WorkflowValidationError: If validation fails otherwise
            ConcurrencyError: If the draft was modified while publishing
        """
        workflow = self.repo.get_workflow_or_raise(workflow_id)
        self._require_status(workflow, WorkflowStatus.DRAFT, "publish")

        StepGraph(workflow).ensure_publishable()

        version_number = self.repo.get_next_version_number(workflow_id)
        now = utc_now()
        snapshot = workflow.model_copy(
            update={
                "status": WorkflowStatus.PUBLISHED,
                "current_version": version_number,
                "updated_at": now,
            },
            deep=True
        )

        version = WorkflowVersion(
            workflow_version_id=generate_workflow_version_id(),
            workflow_id=workflow_id,
            version_number=version_number,
            definition=snapshot,
            published_at=now
        )

        self.repo.create_version(version)

        try:
            self.repo.update_workflow(
                workflow_id=workflow_id,
                updates={
                    "status": WorkflowStatus.PUBLISHED.value,
                    "current_version": version_number,
                },
                expected_version=workflow.version
            )
        except ConcurrencyError:
            # The draft changed after it was read; the snapshot is stale
            self.repo.delete_version(version.workflow_version_id)
            raise

        logger.info(
            f"Published workflow version: {version.workflow_version_id}",
            extra={"workflow_id": workflow_id, "workflow_version_id": version.workflow_version_id}
        )
        return version

    def reopen_draft(self, workflow_id: str) -> WorkflowDefinition:
        """Return a PUBLISHED workflow to DRAFT; running instances keep their version"""
        workflow = self.repo.get_workflow_or_raise(workflow_id)
        self._require_status(workflow, WorkflowStatus.PUBLISHED, "reopen")

        return self.repo.update_workflow(
            workflow_id=workflow_id,
            updates={"status": WorkflowStatus.DRAFT.value},
            expected_version=workflow.version
        )

    def archive_workflow(self, workflow_id: str) -> WorkflowDefinition:
        """Archive a workflow; it can no longer be started"""
        workflow = self.repo.get_workflow_or_raise(workflow_id)
        if workflow.status == WorkflowStatus.ARCHIVED:
            raise InvalidStateError(
                f"Workflow {workflow_id} is already archived",
                details={"workflow_id": workflow_id}
            )

        return self.repo.update_workflow(
            workflow_id=workflow_id,
            updates={"status": WorkflowStatus.ARCHIVED.value},
            expected_version=workflow.version
        )

    def delete_workflow(self, workflow_id: str) -> bool:
        """
        Delete a workflow

        Only DRAFT or ARCHIVED workflows can be deleted.
        Published versions are kept for the instances that run on them.
        """
        workflow = self.repo.get_workflow_or_raise(workflow_id)
        if workflow.status == WorkflowStatus.PUBLISHED:
            raise InvalidStateError(
                f"Published workflow {workflow_id} must be archived before deletion",
                details={"workflow_id": workflow_id, "status": workflow.status.value}
            )

        success = self.repo.delete_workflow(workflow_id)
        if success:
            logger.info(f"Deleted workflow: {workflow_id}", extra={"workflow_id": workflow_id})
        return success

    # =========================================================================
    # Versions
    # =========================================================================

    def list_versions(
        self,
        workflow_id: str,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowVersion]:
        """List versions for a workflow"""
        self.repo.get_workflow_or_raise(workflow_id)
        return self.repo.list_versions(workflow_id, skip=skip, limit=limit)

    def get_version(self, workflow_id: str, version_number: int) -> WorkflowVersion:
        """Get specific workflow version"""
        version = self.repo.get_version_by_number(workflow_id, version_number)
        if not version:
            raise VersionNotFoundError(
                f"Workflow version {version_number} not found",
                details={"workflow_id": workflow_id, "version_number": version_number}
            )
        return version

    def get_startable_version(self, workflow_id: str) -> WorkflowVersion:
        """
        Version new instances start on

        Raises:
            NoPublishedVersionError: If the workflow is not currently PUBLISHED
        """
        workflow = self.repo.get_workflow_or_raise(workflow_id)
        if workflow.status != WorkflowStatus.PUBLISHED or workflow.current_version is None:
            raise NoPublishedVersionError(
                f"Workflow {workflow_id} has no published version",
                details={"workflow_id": workflow_id, "status": workflow.status.value}
            )
        return self.get_version(workflow_id, workflow.current_version)

    @staticmethod
    def _require_status(workflow: WorkflowDefinition, status: WorkflowStatus, action: str) -> None:
        if workflow.status != status:
            raise InvalidStateError(
                f"Cannot {action} workflow {workflow.id} in status {workflow.status.value}",
                details={"workflow_id": workflow.id, "status": workflow.status.value}
            )
