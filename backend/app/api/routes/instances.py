"""Instance API Routes - Start, submit and cancel workflow instances"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field

from ..deps import get_correlation_id_dep
from ...domain.models import ApiModel, RuleEvent, SubmissionResult, WorkflowInstance
from ...domain.enums import InstanceStatus
from ...services.instance_service import InstanceService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class StartInstanceRequest(ApiModel):
    """Request to start an instance"""
    workflow_id: str = Field(..., min_length=1)


class SubmitRequest(ApiModel):
    """Form submission for the current step"""
    form_data: Dict[str, Any] = Field(default_factory=dict)
    expected_step_id: Optional[str] = None
    expected_version: Optional[int] = None
    approved_by_role: Optional[str] = None


class CancelRequest(ApiModel):
    """Cancellation; expected_version guards against lost updates"""
    expected_version: Optional[int] = None


class InstanceListResponse(ApiModel):
    """Response for instance list"""
    items: List[WorkflowInstance]
    page: int
    page_size: int
    total: int


class NotificationListResponse(ApiModel):
    """Rule events of an instance"""
    items: List[RuleEvent]


# ============================================================================
# Routes
# ============================================================================

@router.post("", response_model=WorkflowInstance, status_code=status.HTTP_201_CREATED)
async def start_instance(
    request: StartInstanceRequest,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Start an instance of the workflow's published version"""
    return InstanceService().start_instance(request.workflow_id)


@router.get("", response_model=InstanceListResponse)
async def list_instances(
    workflow_id: Optional[str] = Query(None),
    status: Optional[InstanceStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """List instances, optionally filtered by workflow and status"""
    service = InstanceService()
    skip = (page - 1) * page_size

    return InstanceListResponse(
        items=service.list_instances(workflow_id=workflow_id, status=status, skip=skip, limit=page_size),
        page=page,
        page_size=page_size,
        total=service.count_instances(workflow_id=workflow_id, status=status)
    )


@router.get("/{instance_id}", response_model=WorkflowInstance)
async def get_instance(
    instance_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Get instance by ID"""
    return InstanceService().get_instance(instance_id)


@router.post("/{instance_id}/submit", response_model=SubmissionResult)
async def submit(
    instance_id: str,
    request: SubmitRequest,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Submit form data for the current step

    Rule outcomes (PROCEED, BLOCK, PENDING) are all successful responses;
    the outcome tells the client whether the instance moved.
    """
    return InstanceService().submit(
        instance_id,
        request.form_data,
        expected_step_id=request.expected_step_id,
        expected_version=request.expected_version,
        approved_by_role=request.approved_by_role
    )


@router.post("/{instance_id}/cancel", response_model=WorkflowInstance)
async def cancel_instance(
    instance_id: str,
    request: Optional[CancelRequest] = None,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Cancel a running instance"""
    expected_version = request.expected_version if request else None
    return InstanceService().cancel_instance(instance_id, expected_version=expected_version)


@router.get("/{instance_id}/notifications", response_model=NotificationListResponse)
async def list_notifications(
    instance_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Rule events (NOTIFY_ADMIN, ESCALATE) emitted for the instance"""
    return NotificationListResponse(items=InstanceService().list_notifications(instance_id))
