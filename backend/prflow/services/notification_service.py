"""PRFlow — Approval history, in-app notifications and approver email.

History rows and notifications are added to the caller's session so they
commit (or roll back) together with the transition that produced them.
Email goes out only after commit and never fails the caller.
"""
import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.config import get_settings
from prflow.core.exceptions import NotFoundError
from prflow.core.identity import CurrentUser
from prflow.models.approval import ApprovalAction, ApprovalHistory
from prflow.models.notification import Notification, NotificationType
from prflow.models.purchase_request import PurchaseRequest
from prflow.services.workflow_resolver import ApprovalStep

logger = logging.getLogger(__name__)


class NotificationService:
    """Audit trail and notification emitter for workflow transitions."""

    @staticmethod
    def record_history(
        db: AsyncSession,
        request: PurchaseRequest,
        actor: CurrentUser,
        action: ApprovalAction,
        approval_level: int,
        comments: str | None = None,
    ) -> ApprovalHistory:
        entry = ApprovalHistory(
            purchase_request_id=request.id,
            approver_id=actor.id,
            approver_employee_number=actor.employee_number,
            action=action.value,
            comments=comments,
            approval_level=approval_level,
        )
        db.add(entry)
        return entry

    @staticmethod
    def notify(
        db: AsyncSession,
        user_id: UUID,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        purchase_request_id: UUID | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            purchase_request_id=purchase_request_id,
            title=title,
            message=message,
            type=type.value,
        )
        db.add(notification)
        return notification

    @staticmethod
    async def list_history(db: AsyncSession, purchase_request_id: UUID) -> list[ApprovalHistory]:
        result = await db.execute(
            select(ApprovalHistory)
            .where(ApprovalHistory.purchase_request_id == purchase_request_id)
            .order_by(ApprovalHistory.created_at, ApprovalHistory.approval_level)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 100,
    ) -> list[Notification]:
        q = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            q = q.where(Notification.is_read.is_(False))
        q = q.order_by(Notification.created_at.desc()).limit(limit)
        result = await db.execute(q)
        return list(result.scalars().all())

    @staticmethod
    async def unread_count(db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    @staticmethod
    async def mark_read(db: AsyncSession, user: CurrentUser, notification_id: UUID) -> Notification:
        """Only the owner may mark a notification; others see it as missing."""
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user.id,
            )
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotFoundError("Notification not found")
        notification.is_read = True
        await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, user: CurrentUser) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user.id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        return result.rowcount or 0

    @staticmethod
    def dispatch_approver_emails(request: PurchaseRequest, chain: list[ApprovalStep]) -> bool:
        """
        Queue the "awaiting approval" email to every approver in the chain.
        Returns False when nothing was queued; failures are logged, not raised.
        """
        settings = get_settings()
        if not settings.EMAIL_ENABLED:
            return False
        recipients = sorted({step.approver_email for step in chain if step.approver_email})
        if not recipients:
            logger.info("No approver email addresses for %s", request.requisition_number)
            return False

        link = f"{settings.APP_BASE_URL.rstrip('/')}/purchase-requests/{request.id}"
        try:
            from prflow.tasks.email_tasks import send_approval_request_email

            send_approval_request_email.delay(
                recipients,
                request.requisition_number,
                request.department,
                request.location,
                link,
            )
        except Exception as exc:
            logger.error(
                "Could not queue approver email for %s: %s",
                request.requisition_number, exc, exc_info=True,
            )
            return False
        return True
