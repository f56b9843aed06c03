"""Workflow API Routes - Designer endpoints"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import Field

from ..deps import get_correlation_id_dep
from ...domain.models import (
    ApiModel, BusinessRule, ValidationReport, WorkflowDefinition, WorkflowStep, WorkflowVersion
)
from ...domain.enums import WorkflowStatus
from ...services.workflow_service import WorkflowService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class WorkflowDraftRequest(ApiModel):
    """Authored workflow content"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    steps: List[WorkflowStep] = Field(default_factory=list)
    business_rules: List[BusinessRule] = Field(default_factory=list)

    def to_definition(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            name=self.name,
            description=self.description,
            steps=self.steps,
            business_rules=self.business_rules,
        )


class SaveDraftRequest(WorkflowDraftRequest):
    """Draft update; expected_version guards against lost updates"""
    expected_version: Optional[int] = None


class SaveDraftResponse(ApiModel):
    """Response after saving draft"""
    workflow: WorkflowDefinition
    validation: ValidationReport


class WorkflowListResponse(ApiModel):
    """Response for workflow list"""
    items: List[WorkflowDefinition]
    page: int
    page_size: int
    total: int


class VersionListResponse(ApiModel):
    """Published versions, newest first"""
    items: List[WorkflowVersion]


# ============================================================================
# Routes
# ============================================================================

@router.post("", response_model=WorkflowDefinition, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    request: WorkflowDraftRequest,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Create a new workflow draft"""
    service = WorkflowService()
    workflow = service.create_workflow(request.to_definition())
    return workflow


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    status: Optional[WorkflowStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """List workflows, most recently updated first"""
    service = WorkflowService()
    skip = (page - 1) * page_size

    return WorkflowListResponse(
        items=service.list_workflows(status=status, skip=skip, limit=page_size),
        page=page,
        page_size=page_size,
        total=service.count_workflows(status=status)
    )


@router.get("/{workflow_id}", response_model=WorkflowDefinition)
async def get_workflow(
    workflow_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Get workflow by ID"""
    return WorkflowService().get_workflow(workflow_id)


@router.put("/{workflow_id}", response_model=SaveDraftResponse)
async def save_draft(
    workflow_id: str,
    request: SaveDraftRequest,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Save workflow draft

    The draft is stored even when invalid; the validation report tells the
    designer what must be fixed before publishing.
    """
    service = WorkflowService()
    workflow, validation = service.save_draft(
        workflow_id,
        request.to_definition(),
        expected_version=request.expected_version
    )
    return SaveDraftResponse(workflow=workflow, validation=validation)


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    workflow_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Delete a DRAFT or ARCHIVED workflow"""
    WorkflowService().delete_workflow(workflow_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{workflow_id}/validate", response_model=ValidationReport)
async def validate_workflow(
    workflow_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Validate workflow definition"""
    return WorkflowService().validate_workflow(workflow_id)


@router.post("/{workflow_id}/publish", response_model=WorkflowVersion)
async def publish_workflow(
    workflow_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """
    Publish workflow

    Validates the draft and stores an immutable version snapshot.
    """
    version = WorkflowService().publish_workflow(workflow_id)

    logger.info(
        f"Published workflow: {workflow_id} v{version.version_number}",
        extra={"workflow_id": workflow_id, "workflow_version_id": version.workflow_version_id}
    )
    return version


@router.post("/{workflow_id}/draft", response_model=WorkflowDefinition)
async def reopen_draft(
    workflow_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Return a published workflow to DRAFT for editing"""
    return WorkflowService().reopen_draft(workflow_id)


@router.post("/{workflow_id}/archive", response_model=WorkflowDefinition)
async def archive_workflow(
    workflow_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Archive workflow"""
    return WorkflowService().archive_workflow(workflow_id)


@router.get("/{workflow_id}/versions", response_model=VersionListResponse)
async def list_versions(
    workflow_id: str,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """List published versions"""
    return VersionListResponse(items=WorkflowService().list_versions(workflow_id))


@router.get("/{workflow_id}/versions/{version_number}", response_model=WorkflowVersion)
async def get_version(
    workflow_id: str,
    version_number: int,
    correlation_id: str = Depends(get_correlation_id_dep)
):
    """Get specific version"""
    return WorkflowService().get_version(workflow_id, version_number)
