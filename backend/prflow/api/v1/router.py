"""PRFlow — API v1 router aggregation."""
from fastapi import APIRouter

from prflow.api.v1.endpoints import (
    admin,
    approvals,
    auth,
    notifications,
    purchase_requests,
    reports,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(purchase_requests.router, prefix="/purchase-requests", tags=["purchase-requests"])
api_router.include_router(approvals.router, tags=["approvals"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(reports.router, tags=["reports"])
api_router.include_router(admin.router, tags=["admin"])
