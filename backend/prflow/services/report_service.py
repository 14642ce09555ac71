"""PRFlow — Dashboard statistics."""
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.core.identity import CurrentUser
from prflow.models.purchase_request import PurchaseRequest, RequestStatus
from prflow.schemas.purchase_request import DashboardStats


class ReportService:

    @staticmethod
    async def dashboard_stats(db: AsyncSession, user: CurrentUser) -> DashboardStats:
        """Counts by status. Admins see every request, others their own."""
        scope = [] if user.is_admin else [PurchaseRequest.requester_id == user.id]

        result = await db.execute(
            select(PurchaseRequest.status, func.count(PurchaseRequest.id))
            .where(*scope)
            .group_by(PurchaseRequest.status)
        )
        by_status = {status: count for status, count in result.all()}

        approved_value = (
            await db.execute(
                select(func.coalesce(func.sum(PurchaseRequest.total_estimated_cost), 0)).where(
                    *scope, PurchaseRequest.status == RequestStatus.APPROVED.value
                )
            )
        ).scalar_one()

        awaiting = (
            await db.execute(
                select(func.count(PurchaseRequest.id)).where(
                    PurchaseRequest.current_approver_id == user.id,
                    PurchaseRequest.status == RequestStatus.PENDING.value,
                )
            )
        ).scalar_one()

        return DashboardStats(
            total=sum(by_status.values()),
            pending=by_status.get(RequestStatus.PENDING.value, 0),
            approved=by_status.get(RequestStatus.APPROVED.value, 0),
            rejected=by_status.get(RequestStatus.REJECTED.value, 0),
            returned=by_status.get(RequestStatus.RETURNED.value, 0),
            awaiting_my_approval=awaiting,
            approved_value=Decimal(str(approved_value)).quantize(Decimal("0.01")),
        )
