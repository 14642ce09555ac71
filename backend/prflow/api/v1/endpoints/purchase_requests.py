"""PRFlow — Purchase request endpoints: submission, approval actions, line items."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.api.deps import get_db, require_auth
from prflow.core.identity import CurrentUser
from prflow.db.session import commit_or_raise
from prflow.models.purchase_request import RequestStatus
from prflow.schemas.common import ApiResponse, Meta
from prflow.schemas.line_item import LineItemCreate, LineItemResponse, LineItemUpdate
from prflow.schemas.purchase_request import (
    ApprovalActionRequest,
    ApprovalHistoryResponse,
    PurchaseRequestCreate,
    PurchaseRequestDetailResponse,
    PurchaseRequestResponse,
    PurchaseRequestResubmit,
    TransitionResponse,
)
from prflow.services.notification_service import NotificationService
from prflow.services.purchase_request_service import PurchaseRequestService

router = APIRouter()


def _to_response(request) -> PurchaseRequestResponse:
    return PurchaseRequestResponse.model_validate(request)


@router.post("", response_model=ApiResponse[PurchaseRequestResponse], status_code=status.HTTP_201_CREATED)
async def submit_purchase_request(
    body: PurchaseRequestCreate,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Submit a new purchase request; it starts pending at approval level 1."""
    request, chain = await PurchaseRequestService.submit(db, user, body)
    await commit_or_raise(db)
    NotificationService.dispatch_approver_emails(request, chain)
    return ApiResponse(data=_to_response(request))


@router.get("", response_model=ApiResponse[list[PurchaseRequestResponse]])
async def list_purchase_requests(
    status_filter: str | None = Query(None, alias="status"),
    department: str | None = Query(None),
    location: str | None = Query(None),
    search: str | None = Query(None),
    current_approver_id: UUID | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """List purchase requests visible to the current user."""
    requests, total = await PurchaseRequestService.list_requests(
        db, user,
        status=status_filter,
        department=department,
        location=location,
        search=search,
        current_approver_id=current_approver_id,
        page=page,
        page_size=page_size,
    )
    return ApiResponse(
        data=[_to_response(r) for r in requests],
        meta=Meta(page=page, page_size=page_size, total_count=total),
    )


@router.get("/{request_id}", response_model=ApiResponse[PurchaseRequestResponse])
async def get_purchase_request(
    request_id: UUID,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    request = await PurchaseRequestService.get_request(db, user, request_id)
    return ApiResponse(data=_to_response(request))


@router.get("/{request_id}/details", response_model=ApiResponse[PurchaseRequestDetailResponse])
async def get_purchase_request_details(
    request_id: UUID,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Request with its line items and approval history."""
    request = await PurchaseRequestService.get_request(db, user, request_id)
    items = await PurchaseRequestService.list_line_items(db, user, request_id)
    history = await NotificationService.list_history(db, request_id)
    detail = PurchaseRequestDetailResponse(
        **_to_response(request).model_dump(),
        line_items=[LineItemResponse.model_validate(i) for i in items],
        history=[ApprovalHistoryResponse.model_validate(h) for h in history],
    )
    return ApiResponse(data=detail)


@router.put("/{request_id}", response_model=ApiResponse[PurchaseRequestResponse])
async def resubmit_purchase_request(
    request_id: UUID,
    body: PurchaseRequestResubmit,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Edit a returned request and send it back to level 1 (requester only)."""
    request = await PurchaseRequestService.resubmit(db, user, request_id, body)
    await commit_or_raise(db)
    return ApiResponse(data=_to_response(request))


@router.post("/{request_id}/approve", response_model=ApiResponse[TransitionResponse])
async def approve_purchase_request(
    request_id: UUID,
    body: ApprovalActionRequest,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Approve at the current level (current approver only)."""
    request = await PurchaseRequestService.approve(
        db, user, request_id, comments=body.comments, expected_level=body.expected_level
    )
    await commit_or_raise(db)
    if request.status == RequestStatus.APPROVED.value:
        message = "Request fully approved."
    else:
        message = f"Request moved to level {request.current_approval_level} for next approval."
    return ApiResponse(data=TransitionResponse(message=message, request=_to_response(request)))


@router.post("/{request_id}/reject", response_model=ApiResponse[TransitionResponse])
async def reject_purchase_request(
    request_id: UUID,
    body: ApprovalActionRequest,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    request = await PurchaseRequestService.reject(db, user, request_id, comments=body.comments)
    await commit_or_raise(db)
    return ApiResponse(
        data=TransitionResponse(message="Request rejected successfully", request=_to_response(request))
    )


@router.post("/{request_id}/return", response_model=ApiResponse[TransitionResponse])
async def return_purchase_request(
    request_id: UUID,
    body: ApprovalActionRequest,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Return the request to the requester for revision."""
    request = await PurchaseRequestService.return_request(db, user, request_id, comments=body.comments)
    await commit_or_raise(db)
    return ApiResponse(
        data=TransitionResponse(message="Request returned successfully", request=_to_response(request))
    )


# ── Line items ────────────────────────────────────────────────────────────────

@router.get("/{request_id}/line-items", response_model=ApiResponse[list[LineItemResponse]])
async def list_line_items(
    request_id: UUID,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    items = await PurchaseRequestService.list_line_items(db, user, request_id)
    return ApiResponse(data=[LineItemResponse.model_validate(i) for i in items])


@router.post(
    "/{request_id}/line-items",
    response_model=ApiResponse[LineItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_line_item(
    request_id: UUID,
    body: LineItemCreate,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Add a line item; the request total is recomputed in the same transaction."""
    item = await PurchaseRequestService.add_line_item(db, user, request_id, body)
    await commit_or_raise(db)
    return ApiResponse(data=LineItemResponse.model_validate(item))


@router.put("/{request_id}/line-items/{item_id}", response_model=ApiResponse[LineItemResponse])
async def update_line_item(
    request_id: UUID,
    item_id: UUID,
    body: LineItemUpdate,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    item = await PurchaseRequestService.update_line_item(db, user, request_id, item_id, body)
    await commit_or_raise(db)
    return ApiResponse(data=LineItemResponse.model_validate(item))


@router.delete("/{request_id}/line-items/{item_id}", response_model=ApiResponse[dict])
async def delete_line_item(
    request_id: UUID,
    item_id: UUID,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    await PurchaseRequestService.delete_line_item(db, user, request_id, item_id)
    await commit_or_raise(db)
    return ApiResponse(data={"message": "Line item deleted successfully"})
