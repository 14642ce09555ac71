"""PRFlow — PurchaseRequestService: submission, approval chain, line items.

Status lifecycle:

    submit ──> pending ──approve (more levels)──> pending (level + 1)
                  │ ──approve (last level)──> approved
                  │ ──reject──> rejected
                  └─return──> returned ──resubmit──> pending (level 1)

The current approver is always derived from the current approval level and
the configured chain; current_approver_id is kept in step with it for reads.
Every method works inside the caller's session and only flushes; the caller
commits once so the transition, its history row and its notifications land
together.
"""
import logging
from datetime import date
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.config import get_settings
from prflow.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from prflow.core.identity import APPROVER_ROLES, CurrentUser
from prflow.models.approval import ApprovalAction, ApprovalHistory
from prflow.models.master import InventoryItem
from prflow.models.notification import NotificationType
from prflow.models.purchase_request import LineItem, PurchaseRequest, RequestStatus
from prflow.schemas.line_item import LineItemCreate, LineItemUpdate
from prflow.schemas.purchase_request import PurchaseRequestCreate, PurchaseRequestResubmit
from prflow.services.cost_aggregator import recompute_request_total
from prflow.services.notification_service import NotificationService
from prflow.services.requisition_numbers import RequisitionNumberGenerator
from prflow.services.workflow_resolver import (
    ApprovalStep,
    WorkflowResolver,
    approver_at,
    next_approver,
    require_first_approver,
)

logger = logging.getLogger(__name__)

_ANY = "all"
_REQUIRED_FIELDS = frozenset({"title", "department", "location", "request_date"})


class PurchaseRequestService:
    """Business logic for purchase requests and their approval workflow."""

    # ── Lookups ──────────────────────────────────────────────────────────────

    @staticmethod
    async def _load(db: AsyncSession, request_id: UUID, for_update: bool = False) -> PurchaseRequest:
        q = select(PurchaseRequest).where(PurchaseRequest.id == request_id)
        if for_update:
            # Lock the row and read it fresh, not from the identity map.
            q = q.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(q)
        request = result.scalar_one_or_none()
        if not request:
            raise NotFoundError("Purchase request not found")
        return request

    @staticmethod
    def current_approver_id(request: PurchaseRequest, chain: list[ApprovalStep]) -> UUID | None:
        """The approver configured for the request's current level."""
        if request.status != RequestStatus.PENDING.value:
            return None
        step = approver_at(chain, request.current_approval_level)
        if step is None:
            # Level was removed from the matrix after assignment.
            return request.current_approver_id
        return step.approver_id

    @staticmethod
    async def sync_pending_approvers(db: AsyncSession, department: str, location: str) -> int:
        """
        Re-point pending requests of (department, location) at the approver the
        matrix now names for their level, so visibility and queues follow a
        reassignment. The new approver is notified. Returns the number moved.
        """
        chain = await WorkflowResolver.resolve(db, department, location)
        result = await db.execute(
            select(PurchaseRequest)
            .where(
                PurchaseRequest.department == department,
                PurchaseRequest.location == location,
                PurchaseRequest.status == RequestStatus.PENDING.value,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        moved = 0
        for request in result.scalars().all():
            approver_id = PurchaseRequestService.current_approver_id(request, chain)
            if approver_id == request.current_approver_id:
                continue
            request.current_approver_id = approver_id
            NotificationService.notify(
                db,
                user_id=approver_id,
                purchase_request_id=request.id,
                title="Purchase Request Approval Needed",
                message=(
                    f"A purchase request {request.requisition_number} has been reassigned to you "
                    f"(Level {request.current_approval_level})."
                ),
                type=NotificationType.INFO,
            )
            moved += 1
        await db.flush()
        if moved:
            logger.info("Reassigned %d pending %s/%s requests", moved, department, location)
        return moved

    @staticmethod
    async def _has_acted_on(db: AsyncSession, user_id: UUID, request_id: UUID) -> bool:
        result = await db.execute(
            select(func.count(ApprovalHistory.id)).where(
                ApprovalHistory.purchase_request_id == request_id,
                ApprovalHistory.approver_id == user_id,
            )
        )
        return result.scalar_one() > 0

    @staticmethod
    async def get_request(db: AsyncSession, actor: CurrentUser, request_id: UUID) -> PurchaseRequest:
        """Visible to the requester, admins, the current approver and anyone who already acted on it."""
        request = await PurchaseRequestService._load(db, request_id)
        if (
            actor.is_admin
            or request.requester_id == actor.id
            or request.current_approver_id == actor.id
            or await PurchaseRequestService._has_acted_on(db, actor.id, request.id)
        ):
            return request
        raise AuthorizationError("You are not allowed to view this purchase request.")

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        actor: CurrentUser,
        status: str | None = None,
        department: str | None = None,
        location: str | None = None,
        search: str | None = None,
        current_approver_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[PurchaseRequest], int]:
        """
        Paginated list of requests.
        Admins see everything; everyone else sees their own requests, or the
        requests waiting on them when filtering by their own approver id.
        A filter value of "all" is the same as no filter.
        """
        conditions = []
        if current_approver_id:
            if current_approver_id != actor.id and not actor.is_admin:
                raise AuthorizationError("You can only list requests assigned to yourself.")
            conditions.append(PurchaseRequest.current_approver_id == current_approver_id)
        elif not actor.is_admin:
            conditions.append(PurchaseRequest.requester_id == actor.id)

        if status and status != _ANY:
            conditions.append(PurchaseRequest.status == status)
        if department and department != _ANY:
            conditions.append(PurchaseRequest.department == department)
        if location and location != _ANY:
            conditions.append(PurchaseRequest.location.ilike(f"%{location}%"))
        if search:
            term = f"%{search.strip()}%"
            conditions.append(
                or_(
                    PurchaseRequest.title.ilike(term),
                    PurchaseRequest.requisition_number.ilike(term),
                    PurchaseRequest.business_justification.ilike(term),
                )
            )
        if date_from:
            conditions.append(PurchaseRequest.request_date >= date_from)
        if date_to:
            conditions.append(PurchaseRequest.request_date <= date_to)

        count_q = select(func.count(PurchaseRequest.id)).where(*conditions)
        total = (await db.execute(count_q)).scalar_one()
        q = (
            select(PurchaseRequest)
            .where(*conditions)
            .order_by(PurchaseRequest.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(q)
        return list(result.scalars().all()), total

    # ── Transitions ──────────────────────────────────────────────────────────

    @staticmethod
    async def submit(
        db: AsyncSession,
        actor: CurrentUser,
        payload: PurchaseRequestCreate,
    ) -> tuple[PurchaseRequest, list[ApprovalStep]]:
        """
        Create a pending request at level 1.
        Returns the request and its approval chain (for the approver email).
        Raises ConfigurationError, creating nothing, when no level-1 approver exists.
        """
        chain = await WorkflowResolver.resolve(db, payload.department, payload.location)
        first = require_first_approver(chain, payload.department, payload.location)

        requisition_number = await RequisitionNumberGenerator.next_number(
            db, payload.department, payload.request_date
        )
        request = PurchaseRequest(
            requisition_number=requisition_number,
            title=payload.title,
            department=payload.department,
            location=payload.location,
            requester_id=actor.id,
            request_date=payload.request_date,
            business_justification=payload.business_justification,
            status=RequestStatus.PENDING.value,
            current_approval_level=first.level,
            current_approver_id=first.approver_id,
        )
        db.add(request)
        await db.flush()

        for item in payload.line_items:
            values = await PurchaseRequestService._line_item_values(db, item)
            db.add(LineItem(purchase_request_id=request.id, **values))
        await recompute_request_total(db, request)

        NotificationService.notify(
            db,
            user_id=first.approver_id,
            purchase_request_id=request.id,
            title="Purchase Request Approval Needed",
            message=f"A new purchase request {requisition_number} requires your approval.",
            type=NotificationType.INFO,
        )
        NotificationService.notify(
            db,
            user_id=actor.id,
            purchase_request_id=request.id,
            title="Purchase Request Submitted",
            message=f"Your purchase request {requisition_number} has been submitted successfully.",
            type=NotificationType.SUCCESS,
        )
        await db.flush()
        logger.info(
            "Request %s submitted by %s, awaiting %s (level 1)",
            requisition_number, actor.id, first.approver_id,
        )
        return request, chain

    @staticmethod
    async def approve(
        db: AsyncSession,
        actor: CurrentUser,
        request_id: UUID,
        comments: str | None = None,
        expected_level: int | None = None,
    ) -> PurchaseRequest:
        """
        Approve at the current level. Only the current approver may do this.
        Advances to the next configured level, or finishes as approved.
        """
        request = await PurchaseRequestService._load(db, request_id, for_update=True)
        if request.status == RequestStatus.RETURNED.value:
            raise InvalidTransitionError(
                "Cannot approve a returned request. Please wait for the requester to resubmit."
            )
        if request.status != RequestStatus.PENDING.value:
            raise InvalidTransitionError(f"Cannot approve a request in status: {request.status}")

        chain = await WorkflowResolver.resolve(db, request.department, request.location)
        if PurchaseRequestService.current_approver_id(request, chain) != actor.id:
            raise AuthorizationError("You are not authorized to approve this request at this stage.")
        level = request.current_approval_level
        if expected_level is not None and expected_level != level:
            raise ConflictError(
                f"Request is at approval level {level}, not {expected_level}. Reload and try again."
            )

        NotificationService.record_history(
            db, request, actor, ApprovalAction.APPROVE, approval_level=level, comments=comments
        )

        nxt = next_approver(chain, level)
        if nxt:
            request.current_approval_level = nxt.level
            request.current_approver_id = nxt.approver_id
            NotificationService.notify(
                db,
                user_id=nxt.approver_id,
                purchase_request_id=request.id,
                title="Purchase Request Approval Needed",
                message=(
                    f"A purchase request {request.requisition_number} requires your approval "
                    f"(Level {nxt.level})."
                ),
                type=NotificationType.INFO,
            )
            logger.info("Request %s moved to level %d", request.requisition_number, nxt.level)
        else:
            request.status = RequestStatus.APPROVED.value
            request.current_approver_id = None
            NotificationService.notify(
                db,
                user_id=request.requester_id,
                purchase_request_id=request.id,
                title="Purchase Request Approved",
                message=f"Your purchase request {request.requisition_number} has been fully approved!",
                type=NotificationType.SUCCESS,
            )
            logger.info("Request %s fully approved at level %d", request.requisition_number, level)

        await db.flush()
        return request

    @staticmethod
    async def _load_for_review(db: AsyncSession, actor: CurrentUser, request_id: UUID, verb: str) -> PurchaseRequest:
        """Shared guard for reject and return."""
        if not actor.has_role(*APPROVER_ROLES):
            raise AuthorizationError(f"Only approvers can {verb} purchase requests.")
        request = await PurchaseRequestService._load(db, request_id, for_update=True)
        if request.status != RequestStatus.PENDING.value:
            raise InvalidTransitionError(f"Cannot {verb} a request in status: {request.status}")
        if get_settings().ENFORCE_APPROVER_OWNERSHIP:
            chain = await WorkflowResolver.resolve(db, request.department, request.location)
            if PurchaseRequestService.current_approver_id(request, chain) != actor.id:
                raise AuthorizationError(f"You are not authorized to {verb} this request at this stage.")
        return request

    @staticmethod
    async def reject(
        db: AsyncSession,
        actor: CurrentUser,
        request_id: UUID,
        comments: str | None = None,
    ) -> PurchaseRequest:
        request = await PurchaseRequestService._load_for_review(db, actor, request_id, "reject")
        NotificationService.record_history(
            db, request, actor, ApprovalAction.REJECT,
            approval_level=request.current_approval_level, comments=comments,
        )
        request.status = RequestStatus.REJECTED.value
        request.current_approver_id = None

        message = f"Your purchase request {request.requisition_number} has been rejected."
        if comments:
            message = f"{message} {comments}"
        NotificationService.notify(
            db,
            user_id=request.requester_id,
            purchase_request_id=request.id,
            title="Purchase Request Rejected",
            message=message,
            type=NotificationType.ERROR,
        )
        await db.flush()
        logger.info("Request %s rejected by %s", request.requisition_number, actor.id)
        return request

    @staticmethod
    async def return_request(
        db: AsyncSession,
        actor: CurrentUser,
        request_id: UUID,
        comments: str | None = None,
    ) -> PurchaseRequest:
        """Send the request back to the requester for revision."""
        request = await PurchaseRequestService._load_for_review(db, actor, request_id, "return")
        NotificationService.record_history(
            db, request, actor, ApprovalAction.RETURN,
            approval_level=request.current_approval_level, comments=comments,
        )
        request.status = RequestStatus.RETURNED.value
        request.current_approver_id = None
        request.current_approval_level = 1

        NotificationService.notify(
            db,
            user_id=request.requester_id,
            purchase_request_id=request.id,
            title="Purchase Request Returned",
            message=(
                f"Your purchase request {request.requisition_number} has been returned for revision. "
                "Please review the comments and resubmit."
            ),
            type=NotificationType.WARNING,
        )
        await db.flush()
        logger.info("Request %s returned by %s", request.requisition_number, actor.id)
        return request

    @staticmethod
    async def resubmit(
        db: AsyncSession,
        actor: CurrentUser,
        request_id: UUID,
        changes: PurchaseRequestResubmit,
    ) -> PurchaseRequest:
        """
        Apply the requester's edits to a returned request and restart the
        chain at level 1. The level-1 approver is resolved again, against the
        edited department/location, before anything is changed.
        """
        request = await PurchaseRequestService._load(db, request_id, for_update=True)
        if request.status != RequestStatus.RETURNED.value or request.requester_id != actor.id:
            raise AuthorizationError("Only the requester can edit a returned request.")

        updates = {
            field: value
            for field, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or field not in _REQUIRED_FIELDS
        }
        department = updates.get("department", request.department)
        location = updates.get("location", request.location)
        chain = await WorkflowResolver.resolve(db, department, location)
        first = require_first_approver(chain, department, location)

        for field, value in updates.items():
            setattr(request, field, value)
        request.status = RequestStatus.PENDING.value
        request.current_approval_level = first.level
        request.current_approver_id = first.approver_id

        NotificationService.notify(
            db,
            user_id=first.approver_id,
            purchase_request_id=request.id,
            title="Purchase Request Approval Needed",
            message=(
                f"A returned purchase request {request.requisition_number} has been resubmitted "
                "and requires your approval."
            ),
            type=NotificationType.INFO,
        )
        await db.flush()
        logger.info("Request %s resubmitted, awaiting %s", request.requisition_number, first.approver_id)
        return request

    # ── Line items ───────────────────────────────────────────────────────────

    @staticmethod
    async def _load_for_item_change(db: AsyncSession, actor: CurrentUser, request_id: UUID) -> PurchaseRequest:
        request = await PurchaseRequestService._load(db, request_id, for_update=True)
        if request.requester_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Only the requester can change line items on this request.")
        return request

    @staticmethod
    async def _load_item(db: AsyncSession, request_id: UUID, item_id: UUID) -> LineItem:
        result = await db.execute(
            select(LineItem).where(
                LineItem.id == item_id,
                LineItem.purchase_request_id == request_id,
            )
        )
        item = result.scalar_one_or_none()
        if not item:
            raise NotFoundError("Line item not found on this purchase request")
        return item

    @staticmethod
    async def _line_item_values(db: AsyncSession, data: LineItemCreate) -> dict:
        """Column values for a new item; stock on hand comes from inventory unless given."""
        values = data.model_dump()
        if "stock_available" not in data.model_fields_set:
            result = await db.execute(
                select(InventoryItem.quantity).where(InventoryItem.name == data.item_name)
            )
            values["stock_available"] = max(result.scalar_one_or_none() or 0, 0)
        return values

    @staticmethod
    async def list_line_items(db: AsyncSession, actor: CurrentUser, request_id: UUID) -> list[LineItem]:
        await PurchaseRequestService.get_request(db, actor, request_id)
        result = await db.execute(
            select(LineItem)
            .where(LineItem.purchase_request_id == request_id)
            .order_by(LineItem.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def add_line_item(
        db: AsyncSession,
        actor: CurrentUser,
        request_id: UUID,
        data: LineItemCreate,
    ) -> LineItem:
        """Add an item and recompute the request total. Stock is snapshotted from inventory if not given."""
        request = await PurchaseRequestService._load_for_item_change(db, actor, request_id)
        values = await PurchaseRequestService._line_item_values(db, data)
        item = LineItem(purchase_request_id=request.id, **values)
        db.add(item)
        await recompute_request_total(db, request)
        return item

    @staticmethod
    async def update_line_item(
        db: AsyncSession,
        actor: CurrentUser,
        request_id: UUID,
        item_id: UUID,
        data: LineItemUpdate,
    ) -> LineItem:
        request = await PurchaseRequestService._load_for_item_change(db, actor, request_id)
        item = await PurchaseRequestService._load_item(db, request_id, item_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "justification":
                continue
            setattr(item, field, value)
        await recompute_request_total(db, request)
        return item

    @staticmethod
    async def delete_line_item(
        db: AsyncSession,
        actor: CurrentUser,
        request_id: UUID,
        item_id: UUID,
    ) -> None:
        request = await PurchaseRequestService._load_for_item_change(db, actor, request_id)
        item = await PurchaseRequestService._load_item(db, request_id, item_id)
        await db.delete(item)
        await recompute_request_total(db, request)
