"""PRFlow — Dashboard statistics and report listings."""
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.api.deps import get_db, require_auth
from prflow.core.identity import CurrentUser
from prflow.schemas.common import ApiResponse, Meta
from prflow.schemas.purchase_request import DashboardStats, PurchaseRequestResponse
from prflow.services.purchase_request_service import PurchaseRequestService
from prflow.services.report_service import ReportService

router = APIRouter()


@router.get("/dashboard/stats", response_model=ApiResponse[DashboardStats])
async def dashboard_stats(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Admins see totals for every request, everyone else for their own."""
    stats = await ReportService.dashboard_stats(db, user)
    return ApiResponse(data=stats)


@router.get("/reports/purchase-requests", response_model=ApiResponse[list[PurchaseRequestResponse]])
async def purchase_request_report(
    status_filter: str | None = Query(None, alias="status"),
    department: str | None = Query(None),
    location: str | None = Query(None),
    search: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(500, ge=1, le=5000),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Report listing with a request-date range on top of the usual filters."""
    requests, total = await PurchaseRequestService.list_requests(
        db, user,
        status=status_filter,
        department=department,
        location=location,
        search=search,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
    )
    return ApiResponse(
        data=[PurchaseRequestResponse.model_validate(r) for r in requests],
        meta=Meta(page=page, page_size=page_size, total_count=total),
    )
