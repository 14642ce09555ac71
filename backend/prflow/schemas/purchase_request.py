"""PRFlow — Purchase request, approval action and history schemas."""
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from prflow.schemas.line_item import LineItemCreate, LineItemResponse


class PurchaseRequestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    department: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=100)
    request_date: date = Field(default_factory=date.today)
    business_justification: str | None = None
    line_items: list[LineItemCreate] = Field(default_factory=list)


class PurchaseRequestResubmit(BaseModel):
    """Edits applied while resubmitting a returned request."""

    title: str | None = Field(None, min_length=1, max_length=255)
    department: str | None = Field(None, min_length=1, max_length=100)
    location: str | None = Field(None, min_length=1, max_length=100)
    request_date: date | None = None
    business_justification: str | None = None


class ApprovalActionRequest(BaseModel):
    comments: str | None = Field(None, max_length=2000)
    # Level the client saw; a mismatch means someone acted first.
    expected_level: int | None = Field(None, ge=1)


class PurchaseRequestResponse(BaseModel):
    id: UUID
    requisition_number: str
    title: str
    department: str
    location: str
    requester_id: UUID
    request_date: date
    total_estimated_cost: Decimal
    business_justification: str | None
    status: str
    current_approver_id: UUID | None
    current_approval_level: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ApprovalHistoryResponse(BaseModel):
    id: UUID
    purchase_request_id: UUID
    approver_id: UUID | None
    approver_employee_number: str | None
    action: str
    comments: str | None
    approval_level: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class PurchaseRequestDetailResponse(PurchaseRequestResponse):
    line_items: list[LineItemResponse] = []
    history: list[ApprovalHistoryResponse] = []


class ApprovalStepResponse(BaseModel):
    level: int
    approver_id: UUID
    approver_employee_number: str | None
    approver_name: str | None
    approver_email: str | None


class TransitionResponse(BaseModel):
    message: str
    request: PurchaseRequestResponse


class DashboardStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    returned: int = 0
    awaiting_my_approval: int = 0
    approved_value: Decimal = Decimal("0.00")
