"""PRFlow — Approval workflow and approval history lookups."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.api.deps import get_db, require_auth
from prflow.core.identity import CurrentUser
from prflow.schemas.common import ApiResponse
from prflow.schemas.purchase_request import ApprovalHistoryResponse, ApprovalStepResponse
from prflow.services.notification_service import NotificationService
from prflow.services.purchase_request_service import PurchaseRequestService
from prflow.services.workflow_resolver import WorkflowResolver

router = APIRouter()


@router.get("/approval-workflow", response_model=ApiResponse[list[ApprovalStepResponse]])
async def get_approval_workflow(
    department: str = Query(..., min_length=1),
    location: str = Query(..., min_length=1),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Configured approval chain for a department/location, level 1 first."""
    chain = await WorkflowResolver.resolve(db, department, location)
    return ApiResponse(
        data=[
            ApprovalStepResponse(
                level=step.level,
                approver_id=step.approver_id,
                approver_employee_number=step.approver_employee_number,
                approver_name=step.approver_name,
                approver_email=step.approver_email,
            )
            for step in chain
        ]
    )


@router.get("/approval-history/{request_id}", response_model=ApiResponse[list[ApprovalHistoryResponse]])
async def get_approval_history(
    request_id: UUID,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    await PurchaseRequestService.get_request(db, user, request_id)
    history = await NotificationService.list_history(db, request_id)
    return ApiResponse(data=[ApprovalHistoryResponse.model_validate(h) for h in history])
