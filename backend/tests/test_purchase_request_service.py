"""Tests for the purchase request state machine."""
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from prflow.config import get_settings
from prflow.core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)
from prflow.db.session import commit_or_raise
from prflow.models import ApprovalHistory, ApprovalWorkflow, Notification, PurchaseRequest
from prflow.schemas.purchase_request import PurchaseRequestResubmit
from prflow.services.master_service import MasterService, MasterType
from prflow.services.purchase_request_service import PurchaseRequestService
from prflow.services.report_service import ReportService
from tests.helpers import actor, line_item, request_payload


async def _submit(db, user, **overrides):
    request, _ = await PurchaseRequestService.submit(db, actor(user), request_payload(**overrides))
    await db.commit()
    return request


async def _reload(db, request_id):
    result = await db.execute(
        select(PurchaseRequest)
        .where(PurchaseRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _notifications(db, user):
    result = await db.execute(
        select(Notification).where(Notification.user_id == user.id).order_by(Notification.created_at)
    )
    return list(result.scalars().all())


async def _history(db, request_id):
    result = await db.execute(
        select(ApprovalHistory)
        .where(ApprovalHistory.purchase_request_id == request_id)
        .order_by(ApprovalHistory.created_at)
    )
    return list(result.scalars().all())


class TestSubmit:

    async def test_submit_starts_at_level_one(self, db, users, workflow):
        request = await _submit(db, users["riley"])

        assert request.status == "pending"
        assert request.current_approval_level == 1
        assert request.current_approver_id == users["alice"].id
        assert request.requester_id == users["riley"].id
        assert request.requisition_number == "IT-2026-0001"
        assert request.total_estimated_cost == Decimal("0.00")
        assert request.version == 1

    async def test_submit_notifies_approver_and_requester(self, db, users, workflow):
        await _submit(db, users["riley"])

        [to_alice] = await _notifications(db, users["alice"])
        [to_riley] = await _notifications(db, users["riley"])
        assert to_alice.type == "info"
        assert "IT-2026-0001" in to_alice.message
        assert to_riley.type == "success"
        assert await _notifications(db, users["bob"]) == []

    async def test_submit_with_inline_items_computes_total(self, db, users, workflow):
        payload = request_payload(line_items=[
            line_item(),
            line_item(item_name="Monitor", required_quantity=3, estimated_cost=Decimal("199.99")),
        ])
        request, chain = await PurchaseRequestService.submit(db, actor(users["riley"]), payload)
        await db.commit()

        assert request.total_estimated_cost == Decimal("2099.97")
        assert [step.level for step in chain] == [1, 2]

    async def test_submit_without_level_one_approver_creates_nothing(self, db, users):
        db.add(ApprovalWorkflow(department="IT", location="HQ", approval_level=2, approver_id=users["bob"].id))
        await db.commit()

        with pytest.raises(ConfigurationError):
            await PurchaseRequestService.submit(db, actor(users["riley"]), request_payload())
        await db.rollback()

        count = (await db.execute(select(func.count(PurchaseRequest.id)))).scalar_one()
        assert count == 0

    async def test_submit_for_unconfigured_location_fails(self, db, users, workflow):
        with pytest.raises(ConfigurationError):
            await PurchaseRequestService.submit(db, actor(users["riley"]), request_payload(location="Branch"))

    async def test_requisition_numbers_increment_per_department(self, db, users, workflow):
        first = await _submit(db, users["riley"])
        second = await _submit(db, users["sam"])
        assert first.requisition_number == "IT-2026-0001"
        assert second.requisition_number == "IT-2026-0002"


class TestApprove:

    async def test_full_chain_alice_then_bob(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        assert request.current_approver_id == users["alice"].id

        request = await PurchaseRequestService.approve(db, actor(users["alice"]), request.id, "ok")
        await db.commit()
        assert request.status == "pending"
        assert request.current_approval_level == 2
        assert request.current_approver_id == users["bob"].id
        # No final-approval notice yet
        assert [n.title for n in await _notifications(db, users["riley"])] == ["Purchase Request Submitted"]
        assert len(await _notifications(db, users["bob"])) == 1

        request = await PurchaseRequestService.approve(db, actor(users["bob"]), request.id)
        await db.commit()
        assert request.status == "approved"
        assert request.current_approver_id is None
        assert request.current_approval_level == 2

        final = (await _notifications(db, users["riley"]))[-1]
        assert final.type == "success"
        assert final.title == "Purchase Request Approved"

        history = await _history(db, request.id)
        assert [(h.action, h.approval_level, h.approver_id) for h in history] == [
            ("approve", 1, users["alice"].id),
            ("approve", 2, users["bob"].id),
        ]
        assert history[0].comments == "ok"
        assert history[0].approver_employee_number == "E0002"

    async def test_single_level_chain_approves_immediately(self, db, users):
        db.add(ApprovalWorkflow(department="Ops", location="HQ", approval_level=1, approver_id=users["carol"].id))
        await db.commit()
        request = await _submit(db, users["riley"], department="Ops")

        request = await PurchaseRequestService.approve(db, actor(users["carol"]), request.id)
        assert request.status == "approved"
        assert request.current_approver_id is None

    @pytest.mark.parametrize("who", ["bob", "carol", "riley", "admin"])
    async def test_only_current_approver_may_approve(self, db, users, workflow, who):
        request_id = (await _submit(db, users["riley"])).id

        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.approve(db, actor(users[who]), request_id)
        await db.rollback()

        request = await _reload(db, request_id)
        assert request.status == "pending"
        assert request.current_approval_level == 1
        assert request.current_approver_id == users["alice"].id
        assert await _history(db, request_id) == []

    async def test_previous_approver_cannot_approve_again(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        await PurchaseRequestService.approve(db, actor(users["alice"]), request.id)
        await db.commit()

        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.approve(db, actor(users["alice"]), request.id)

    async def test_expected_level_mismatch_is_a_conflict(self, db, users, workflow):
        request_id = (await _submit(db, users["riley"])).id

        with pytest.raises(ConflictError):
            await PurchaseRequestService.approve(db, actor(users["alice"]), request_id, expected_level=2)
        await db.rollback()

        request = await PurchaseRequestService.approve(db, actor(users["alice"]), request_id, expected_level=1)
        assert request.current_approval_level == 2

    @pytest.mark.parametrize("who", ["alice", "bob", "admin", "riley"])
    async def test_returned_request_cannot_be_approved(self, db, users, workflow, who):
        request_id = (await _submit(db, users["riley"])).id
        await PurchaseRequestService.return_request(db, actor(users["alice"]), request_id, "add justification")
        await db.commit()

        with pytest.raises(InvalidTransitionError):
            await PurchaseRequestService.approve(db, actor(users[who]), request_id)
        await db.rollback()

        request = await _reload(db, request_id)
        assert request.status == "returned"
        assert request.current_approver_id is None
        assert len(await _history(db, request_id)) == 1

    async def test_approved_request_cannot_be_approved_again(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        await PurchaseRequestService.approve(db, actor(users["alice"]), request.id)
        await PurchaseRequestService.approve(db, actor(users["bob"]), request.id)
        await db.commit()

        with pytest.raises(InvalidTransitionError):
            await PurchaseRequestService.approve(db, actor(users["bob"]), request.id)

    async def test_unknown_request_is_not_found(self, db, users, workflow):
        with pytest.raises(NotFoundError):
            await PurchaseRequestService.approve(db, actor(users["alice"]), uuid.uuid4())

    async def test_approver_follows_matrix_changes(self, db, users, workflow):
        request_id = (await _submit(db, users["riley"])).id
        await PurchaseRequestService.approve(db, actor(users["alice"]), request_id)
        await db.commit()

        # Level 2 reassigned from Bob to Carol while the request waits.
        entry = (
            await db.execute(
                select(ApprovalWorkflow).where(ApprovalWorkflow.approval_level == 2)
            )
        ).scalar_one()
        entry.approver_id = users["carol"].id
        await db.commit()

        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.approve(db, actor(users["bob"]), request_id)
        await db.rollback()
        request = await PurchaseRequestService.approve(db, actor(users["carol"]), request_id)
        assert request.status == "approved"


class TestRejectAndReturn:

    @pytest.mark.parametrize("approvals", [0, 1])
    async def test_reject_at_any_pending_level(self, db, users, workflow, approvals):
        request = await _submit(db, users["riley"])
        if approvals:
            await PurchaseRequestService.approve(db, actor(users["alice"]), request.id)
            await db.commit()
        level = request.current_approval_level

        request = await PurchaseRequestService.reject(db, actor(users["bob"]), request.id, "over budget")
        await db.commit()

        assert request.status == "rejected"
        assert request.current_approver_id is None
        last = (await _history(db, request.id))[-1]
        assert last.action == "reject"
        assert last.approval_level == level
        notice = (await _notifications(db, users["riley"]))[-1]
        assert notice.type == "error"
        assert "over budget" in notice.message

    @pytest.mark.parametrize("approvals", [0, 1])
    async def test_return_at_any_pending_level_resets_to_one(self, db, users, workflow, approvals):
        request = await _submit(db, users["riley"])
        if approvals:
            await PurchaseRequestService.approve(db, actor(users["alice"]), request.id)
            await db.commit()

        request = await PurchaseRequestService.return_request(db, actor(users["bob"]), request.id, "fix")
        await db.commit()

        assert request.status == "returned"
        assert request.current_approver_id is None
        assert request.current_approval_level == 1
        assert (await _notifications(db, users["riley"]))[-1].type == "warning"

    async def test_requesters_cannot_reject_or_return(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.reject(db, actor(users["riley"]), request.id)
        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.return_request(db, actor(users["sam"]), request.id)

    async def test_any_approver_may_reject_by_default(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        request = await PurchaseRequestService.reject(db, actor(users["carol"]), request.id)
        assert request.status == "rejected"

    async def test_ownership_enforced_when_configured(self, db, users, workflow, monkeypatch):
        monkeypatch.setattr(get_settings(), "ENFORCE_APPROVER_OWNERSHIP", True)
        request_id = (await _submit(db, users["riley"])).id

        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.reject(db, actor(users["carol"]), request_id)
        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.return_request(db, actor(users["bob"]), request_id)
        await db.rollback()

        request = await PurchaseRequestService.return_request(db, actor(users["alice"]), request_id)
        assert request.status == "returned"

    async def test_terminal_requests_cannot_be_rejected_or_returned(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        await PurchaseRequestService.reject(db, actor(users["alice"]), request.id)
        await db.commit()

        with pytest.raises(InvalidTransitionError):
            await PurchaseRequestService.reject(db, actor(users["alice"]), request.id)
        with pytest.raises(InvalidTransitionError):
            await PurchaseRequestService.return_request(db, actor(users["alice"]), request.id)


class TestResubmit:

    async def test_return_then_resubmit_goes_back_to_alice(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        request = await PurchaseRequestService.return_request(
            db, actor(users["alice"]), request.id, "add justification"
        )
        await db.commit()
        assert request.status == "returned"
        assert request.current_approval_level == 1
        assert request.current_approver_id is None
        assert (await _history(db, request.id))[0].comments == "add justification"

        changes = PurchaseRequestResubmit(business_justification="Three engineers start in November")
        request = await PurchaseRequestService.resubmit(db, actor(users["riley"]), request.id, changes)
        await db.commit()

        assert request.status == "pending"
        assert request.current_approval_level == 1
        assert request.current_approver_id == users["alice"].id
        assert request.business_justification == "Three engineers start in November"
        assert request.title == "Laptops for new hires"
        assert len(await _notifications(db, users["alice"])) == 2

    async def test_resubmit_after_level_two_return_restarts_chain(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        await PurchaseRequestService.approve(db, actor(users["alice"]), request.id)
        await PurchaseRequestService.return_request(db, actor(users["bob"]), request.id)
        await db.commit()

        request = await PurchaseRequestService.resubmit(
            db, actor(users["riley"]), request.id, PurchaseRequestResubmit()
        )
        assert request.current_approval_level == 1
        assert request.current_approver_id == users["alice"].id

    async def test_resubmit_re_resolves_against_new_location(self, db, users, workflow):
        db.add(ApprovalWorkflow(department="IT", location="Branch", approval_level=1, approver_id=users["carol"].id))
        await db.commit()
        request = await _submit(db, users["riley"])
        await PurchaseRequestService.return_request(db, actor(users["alice"]), request.id)
        await db.commit()

        request = await PurchaseRequestService.resubmit(
            db, actor(users["riley"]), request.id, PurchaseRequestResubmit(location="Branch")
        )
        assert request.location == "Branch"
        assert request.current_approver_id == users["carol"].id

    async def test_resubmit_to_unconfigured_location_changes_nothing(self, db, users, workflow):
        request_id = (await _submit(db, users["riley"])).id
        await PurchaseRequestService.return_request(db, actor(users["alice"]), request_id)
        await db.commit()

        with pytest.raises(ConfigurationError):
            await PurchaseRequestService.resubmit(
                db, actor(users["riley"]), request_id, PurchaseRequestResubmit(location="Nowhere")
            )
        await db.rollback()

        request = await _reload(db, request_id)
        assert request.status == "returned"
        assert request.location == "HQ"

    @pytest.mark.parametrize("who", ["sam", "alice", "admin"])
    async def test_only_requester_may_resubmit(self, db, users, workflow, who):
        request_id = (await _submit(db, users["riley"])).id
        await PurchaseRequestService.return_request(db, actor(users["alice"]), request_id)
        await db.commit()

        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.resubmit(
                db, actor(users[who]), request_id, PurchaseRequestResubmit(title="Hijacked")
            )
        await db.rollback()

        request = await _reload(db, request_id)
        assert request.status == "returned"
        assert request.title == "Laptops for new hires"

    @pytest.mark.parametrize("outcome", ["pending", "approved", "rejected"])
    async def test_resubmit_requires_returned_status(self, db, users, workflow, outcome):
        request_id = (await _submit(db, users["riley"])).id
        if outcome == "approved":
            await PurchaseRequestService.approve(db, actor(users["alice"]), request_id)
            await PurchaseRequestService.approve(db, actor(users["bob"]), request_id)
        elif outcome == "rejected":
            await PurchaseRequestService.reject(db, actor(users["alice"]), request_id)
        await db.commit()

        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.resubmit(
                db, actor(users["riley"]), request_id, PurchaseRequestResubmit(title="Changed")
            )
        await db.rollback()

        request = await _reload(db, request_id)
        assert request.status == outcome
        assert request.title == "Laptops for new hires"


class TestReads:

    async def test_visibility(self, db, users, workflow):
        request = await _submit(db, users["riley"])

        for who in ("riley", "admin", "alice"):
            found = await PurchaseRequestService.get_request(db, actor(users[who]), request.id)
            assert found.id == request.id
        for who in ("sam", "bob", "carol"):
            with pytest.raises(AuthorizationError):
                await PurchaseRequestService.get_request(db, actor(users[who]), request.id)

    async def test_past_approver_keeps_visibility(self, db, users, workflow):
        request = await _submit(db, users["riley"])
        await PurchaseRequestService.approve(db, actor(users["alice"]), request.id)
        await db.commit()

        found = await PurchaseRequestService.get_request(db, actor(users["alice"]), request.id)
        assert found.current_approver_id == users["bob"].id

    async def test_list_scoping_and_filters(self, db, users, workflow):
        mine = await _submit(db, users["riley"], title="Laptops")
        await _submit(db, users["sam"], title="Chairs")

        rows, total = await PurchaseRequestService.list_requests(db, actor(users["riley"]))
        assert total == 1 and rows[0].id == mine.id

        rows, total = await PurchaseRequestService.list_requests(db, actor(users["admin"]), status="all")
        assert total == 2

        rows, total = await PurchaseRequestService.list_requests(db, actor(users["admin"]), search="chair")
        assert [r.title for r in rows] == ["Chairs"]

        rows, total = await PurchaseRequestService.list_requests(
            db, actor(users["alice"]), current_approver_id=users["alice"].id
        )
        assert total == 2

        rows, total = await PurchaseRequestService.list_requests(
            db, actor(users["admin"]), status="approved"
        )
        assert total == 0

    async def test_cannot_list_someone_elses_queue(self, db, users, workflow):
        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.list_requests(
                db, actor(users["bob"]), current_approver_id=users["alice"].id
            )

    async def test_pagination(self, db, users, workflow):
        for n in range(3):
            await _submit(db, users["riley"], title=f"Request {n}")
        rows, total = await PurchaseRequestService.list_requests(
            db, actor(users["riley"]), page=2, page_size=2
        )
        assert total == 3
        assert len(rows) == 1


class TestReassignment:

    async def _reassign(self, db, level, approver):
        entry = (
            await db.execute(
                select(ApprovalWorkflow).where(
                    ApprovalWorkflow.department == "IT",
                    ApprovalWorkflow.location == "HQ",
                    ApprovalWorkflow.approval_level == level,
                )
            )
        ).scalar_one()
        await MasterService.update_record(
            db, MasterType.APPROVAL_WORKFLOWS, entry.id, {"approver_id": str(approver.id)}
        )
        await db.commit()

    async def test_waiting_request_moves_to_new_approver(self, db, users, workflow):
        request_id = (await _submit(db, users["riley"])).id
        await self._reassign(db, 1, users["carol"])
        carol, alice = actor(users["carol"]), actor(users["alice"])

        request = await PurchaseRequestService.get_request(db, carol, request_id)
        assert request.current_approver_id == carol.id
        _, total = await PurchaseRequestService.list_requests(db, carol, current_approver_id=carol.id)
        assert total == 1
        assert (await ReportService.dashboard_stats(db, carol)).awaiting_my_approval == 1
        notice = (await _notifications(db, users["carol"]))[-1]
        assert "reassigned" in notice.message

        _, total = await PurchaseRequestService.list_requests(db, alice, current_approver_id=alice.id)
        assert total == 0
        assert (await ReportService.dashboard_stats(db, alice)).awaiting_my_approval == 0
        with pytest.raises(AuthorizationError):
            await PurchaseRequestService.get_request(db, alice, request_id)

        request = await PurchaseRequestService.approve(db, carol, request_id)
        assert request.current_approver_id == users["bob"].id

    async def test_requests_at_other_levels_stay_put(self, db, users, workflow):
        request_id = (await _submit(db, users["riley"])).id
        await PurchaseRequestService.approve(db, actor(users["alice"]), request_id)
        await db.commit()

        await self._reassign(db, 1, users["carol"])

        request = await _reload(db, request_id)
        assert request.current_approval_level == 2
        assert request.current_approver_id == users["bob"].id
        assert await _notifications(db, users["carol"]) == []


class TestConcurrency:

    async def test_stale_version_becomes_conflict(self, session_maker, users, workflow):
        async with session_maker() as setup:
            request = await _submit(setup, users["riley"])

        async with session_maker() as first, session_maker() as second:
            mine = await first.get(PurchaseRequest, request.id)
            theirs = await second.get(PurchaseRequest, request.id)

            mine.title = "Edited first"
            await first.commit()

            theirs.title = "Edited second"
            with pytest.raises(ConflictError) as exc_info:
                await commit_or_raise(second)
            assert isinstance(exc_info.value.__cause__, StaleDataError)

        async with session_maker() as check:
            stored = await check.get(PurchaseRequest, request.id)
            assert stored.title == "Edited first"
            assert stored.version == 2

    async def test_only_one_of_two_simultaneous_approvals_lands(self, session_maker, users, workflow):
        async with session_maker() as setup:
            request_id = (await _submit(setup, users["riley"])).id

        async with session_maker() as first, session_maker() as second:
            # Both sessions have seen the request at level 1.
            await first.get(PurchaseRequest, request_id)
            await second.get(PurchaseRequest, request_id)

            await PurchaseRequestService.approve(first, actor(users["alice"]), request_id, expected_level=1)
            await commit_or_raise(first)

            with pytest.raises(AuthorizationError):
                await PurchaseRequestService.approve(second, actor(users["alice"]), request_id, expected_level=1)
            await second.rollback()

        async with session_maker() as check:
            stored = await check.get(PurchaseRequest, request_id)
            assert stored.current_approval_level == 2
            assert stored.current_approver_id == users["bob"].id
            assert len(await _history(check, request_id)) == 1

    async def test_failed_commit_leaves_no_history_or_notifications(
        self, session_maker, users, workflow, monkeypatch
    ):
        async with session_maker() as setup:
            request_id = (await _submit(setup, users["riley"])).id

        async def broken_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        async with session_maker() as session:
            await PurchaseRequestService.reject(session, actor(users["alice"]), request_id, "no budget")
            monkeypatch.setattr(session, "commit", broken_commit)
            with pytest.raises(PersistenceError):
                await commit_or_raise(session)

        async with session_maker() as check:
            stored = await check.get(PurchaseRequest, request_id)
            assert stored.status == "pending"
            assert stored.current_approver_id == users["alice"].id
            assert await _history(check, request_id) == []
            notifications = (
                await check.execute(
                    select(func.count(Notification.id)).where(Notification.purchase_request_id == request_id)
                )
            ).scalar_one()
            # Only the two written at submission.
            assert notifications == 2
