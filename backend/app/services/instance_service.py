"""Instance Service - Running workflow instances"""
from typing import Any, Dict, List, Optional

from ..domain.models import RuleEvent, SubmissionResult, WorkflowInstance
from ..domain.enums import InstanceStatus
from ..domain.errors import DomainError, StaleInstanceError
from ..engine.engine import WorkflowEngine
from ..repositories.instance_repo import InstanceRepository
from ..repositories.notification_repo import NotificationRepository
from ..repositories.workflow_repo import WorkflowRepository
from .workflow_service import WorkflowService
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InstanceService:
    """Service for workflow instance operations"""

    def __init__(self):
        self.workflow_service = WorkflowService()
        self.workflow_repo = WorkflowRepository()
        self.instance_repo = InstanceRepository()
        self.notification_repo = NotificationRepository()
        self.engine = WorkflowEngine()

    def start_instance(self, workflow_id: str) -> WorkflowInstance:
        """
        Start an instance on the workflow's current published version

        Raises:
            WorkflowNotFoundError: If the workflow does not exist
            NoPublishedVersionError: If the workflow is not PUBLISHED
        """
        version = self.workflow_service.get_startable_version(workflow_id)
        instance = self.engine.start(version)
        return self.instance_repo.create_instance(instance)

    def get_instance(self, instance_id: str) -> WorkflowInstance:
        """Get instance by ID"""
        return self.instance_repo.get_instance_or_raise(instance_id)

    def list_instances(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[InstanceStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowInstance]:
        """List instances"""
        return self.instance_repo.list_instances(
            workflow_id=workflow_id, status=status, skip=skip, limit=limit
        )

    def count_instances(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[InstanceStatus] = None
    ) -> int:
        """Count instances"""
        return self.instance_repo.count_instances(workflow_id=workflow_id, status=status)

    def submit(
        self,
        instance_id: str,
        form_data: Optional[Dict[str, Any]],
        expected_step_id: Optional[str] = None,
        expected_version: Optional[int] = None,
        approved_by_role: Optional[str] = None
    ) -> SubmissionResult:
        """
        Submit form data for the instance's current step

        The new state and any rule events are persisted; the stored instance
        is only replaced if nobody changed it since it was read. Events are
        withdrawn again when the state cannot be saved.
        """
        instance = self.instance_repo.get_instance_or_raise(instance_id)
        self._check_expected_version(instance, expected_version)

        version = self.workflow_repo.get_version_or_raise(instance.workflow_version_id)

        outbox: List[RuleEvent] = []
        result = self.engine.submit(
            version,
            instance,
            form_data,
            expected_step_id=expected_step_id,
            approved_by_role=approved_by_role,
            outbox=outbox
        )

        # Queue events before the state change; withdraw them if it is rejected
        self.notification_repo.create_notifications_bulk(outbox)
        try:
            saved = self.instance_repo.save_instance(result.instance, expected_version=instance.version)
        except DomainError:
            if outbox:
                logger.warning(
                    f"Withdrawing {len(outbox)} rule event(s); instance {instance_id} was not saved",
                    extra={"instance_id": instance_id}
                )
            self.notification_repo.delete_notifications([event.event_id for event in outbox])
            raise

        return SubmissionResult(instance=saved, outcome=result.outcome)

    def cancel_instance(self, instance_id: str, expected_version: Optional[int] = None) -> WorkflowInstance:
        """Cancel a running instance"""
        instance = self.instance_repo.get_instance_or_raise(instance_id)
        self._check_expected_version(instance, expected_version)

        cancelled = self.engine.cancel(instance)
        return self.instance_repo.save_instance(cancelled, expected_version=instance.version)

    def list_notifications(self, instance_id: str) -> List[RuleEvent]:
        """Rule events emitted for an instance"""
        self.instance_repo.get_instance_or_raise(instance_id)
        return self.notification_repo.list_for_instance(instance_id)

    @staticmethod
    def _check_expected_version(instance: WorkflowInstance, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != instance.version:
            raise StaleInstanceError(
                f"Instance {instance.id} is at version {instance.version}, not {expected_version}",
                details={
                    "instance_id": instance.id,
                    "expected_version": expected_version,
                    "current_version": instance.version
                }
            )
