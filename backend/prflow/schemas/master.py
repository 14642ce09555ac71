"""PRFlow — Master data schemas (admin screens)."""
from uuid import UUID

from pydantic import BaseModel, Field


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str | None = Field(None, max_length=20)
    is_active: bool = True


class DepartmentUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    code: str | None = Field(None, max_length=20)
    is_active: bool | None = None


class DepartmentResponse(BaseModel):
    id: UUID
    name: str
    code: str | None
    is_active: bool

    class Config:
        from_attributes = True


class LocationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    is_active: bool = True


class LocationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    is_active: bool | None = None


class LocationResponse(BaseModel):
    id: UUID
    name: str
    is_active: bool

    class Config:
        from_attributes = True


class InventoryItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    unit_of_measure: str = Field(..., min_length=1, max_length=50)
    quantity: int = Field(0, ge=0, strict=True)


class InventoryItemUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    unit_of_measure: str | None = Field(None, min_length=1, max_length=50)
    quantity: int | None = Field(None, ge=0, strict=True)


class InventoryItemResponse(BaseModel):
    id: UUID
    name: str
    unit_of_measure: str
    quantity: int

    class Config:
        from_attributes = True


class ApprovalWorkflowCreate(BaseModel):
    department: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=100)
    approval_level: int = Field(..., ge=1)
    approver_id: UUID
    is_active: bool = True


class ApprovalWorkflowUpdate(BaseModel):
    approval_level: int | None = Field(None, ge=1)
    approver_id: UUID | None = None
    is_active: bool | None = None


class ApprovalWorkflowResponse(BaseModel):
    id: UUID
    department: str
    location: str
    approval_level: int
    approver_id: UUID
    is_active: bool

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: UUID
    employee_number: str
    full_name: str
    email: str
    department: str | None
    location: str | None
    role: str
    is_active: bool

    class Config:
        from_attributes = True
