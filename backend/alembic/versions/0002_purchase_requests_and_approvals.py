"""purchase requests, line items, approval workflow, history, notifications

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "approval_workflows",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("location", sa.String(100), nullable=False),
        sa.Column("approval_level", sa.Integer(), nullable=False),
        sa.Column("approver_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("department", "location", "approval_level", name="uq_approval_workflow_level"),
        sa.CheckConstraint("approval_level >= 1", name="ck_approval_level_positive"),
    )

    op.create_table(
        "requisition_counters",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("department_code", sa.String(20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("department_code", "year", name="uq_requisition_counter"),
    )

    op.create_table(
        "purchase_requests",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("requisition_number", sa.String(50), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("department", sa.String(100), nullable=False),
        sa.Column("location", sa.String(100), nullable=False),
        sa.Column("requester_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("request_date", sa.Date(), nullable=False),
        sa.Column("total_estimated_cost", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("business_justification", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("current_approver_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("current_approval_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'returned')", name="ck_purchase_requests_status"
        ),
        sa.CheckConstraint("current_approval_level >= 1", name="ck_purchase_requests_level_positive"),
        # Only pending requests have someone to act next.
        sa.CheckConstraint(
            "(status = 'pending') = (current_approver_id IS NOT NULL)",
            name="ck_purchase_requests_approver_when_pending",
        ),
    )
    op.create_index("ix_purchase_requests_department", "purchase_requests", ["department"])
    op.create_index("ix_purchase_requests_location", "purchase_requests", ["location"])
    op.create_index("ix_purchase_requests_requester_id", "purchase_requests", ["requester_id"])
    op.create_index("ix_purchase_requests_status", "purchase_requests", ["status"])
    op.create_index("ix_purchase_requests_current_approver_id", "purchase_requests", ["current_approver_id"])

    op.create_table(
        "line_items",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("purchase_request_id", UUID(as_uuid=True), sa.ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("required_quantity", sa.Integer(), nullable=False),
        sa.Column("unit_of_measure", sa.String(50), nullable=False),
        sa.Column("required_by_date", sa.Date(), nullable=False),
        sa.Column("delivery_location", sa.String(255), nullable=False),
        sa.Column("estimated_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("justification", sa.Text(), nullable=True),
        sa.Column("stock_available", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("required_quantity >= 1", name="ck_line_items_quantity_positive"),
        sa.CheckConstraint("estimated_cost >= 0.01", name="ck_line_items_cost_positive"),
        sa.CheckConstraint("stock_available >= 0", name="ck_line_items_stock_non_negative"),
    )
    op.create_index("ix_line_items_purchase_request_id", "line_items", ["purchase_request_id"])

    op.create_table(
        "approval_history",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("purchase_request_id", UUID(as_uuid=True), sa.ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("approver_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("approver_employee_number", sa.String(50), nullable=True),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("approval_level", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("action IN ('approve', 'reject', 'return')", name="ck_approval_history_action"),
    )
    op.create_index("ix_approval_history_purchase_request_id", "approval_history", ["purchase_request_id"])

    # History is append-only.
    op.execute("""
        CREATE OR REPLACE FUNCTION approval_history_immutable() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'approval_history rows cannot be modified';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_approval_history_immutable
        BEFORE UPDATE ON approval_history
        FOR EACH ROW EXECUTE FUNCTION approval_history_immutable();
    """)

    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("purchase_request_id", UUID(as_uuid=True), sa.ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="info"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("type IN ('info', 'success', 'warning', 'error')", name="ck_notifications_type"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.execute("DROP TRIGGER IF EXISTS trg_approval_history_immutable ON approval_history")
    op.execute("DROP FUNCTION IF EXISTS approval_history_immutable()")
    op.drop_table("approval_history")
    op.drop_table("line_items")
    op.drop_table("purchase_requests")
    op.drop_table("requisition_counters")
    op.drop_table("approval_workflows")
