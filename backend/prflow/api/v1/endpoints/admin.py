"""PRFlow — Admin endpoints: master data and users."""
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.api.deps import get_db, require_auth, require_role
from prflow.core.identity import ROLE_ADMIN, CurrentUser
from prflow.db.session import commit_or_raise
from prflow.models.user import User
from prflow.schemas.common import ApiResponse
from prflow.schemas.master import InventoryItemResponse, UserResponse
from prflow.services.master_service import MasterService, MasterType

router = APIRouter()
require_admin = require_role(ROLE_ADMIN)


@router.get("/inventory", response_model=ApiResponse[list[InventoryItemResponse]])
async def list_inventory(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Stock on hand, for the line-item item picker."""
    items = await MasterService.list_records(db, MasterType.INVENTORY)
    return ApiResponse(data=[InventoryItemResponse.model_validate(i) for i in items])


@router.get("/admin/users", response_model=ApiResponse[list[UserResponse]])
async def list_users(
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).order_by(User.full_name))
    return ApiResponse(data=[UserResponse.model_validate(u) for u in result.scalars().all()])


@router.get("/admin/masters/{master_type}", response_model=ApiResponse[list[dict]])
async def list_master_records(
    master_type: MasterType,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    records = await MasterService.list_records(db, master_type)
    return ApiResponse(data=[MasterService.serialize(master_type, r) for r in records])


@router.post("/admin/masters/{master_type}", response_model=ApiResponse[dict], status_code=status.HTTP_201_CREATED)
async def create_master_record(
    master_type: MasterType,
    body: dict[str, Any] = Body(...),
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    record = await MasterService.create_record(db, master_type, body)
    await commit_or_raise(db)
    return ApiResponse(data=MasterService.serialize(master_type, record))


@router.put("/admin/masters/{master_type}/{record_id}", response_model=ApiResponse[dict])
async def update_master_record(
    master_type: MasterType,
    record_id: UUID,
    body: dict[str, Any] = Body(...),
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    record = await MasterService.update_record(db, master_type, record_id, body)
    await commit_or_raise(db)
    return ApiResponse(data=MasterService.serialize(master_type, record))


@router.delete("/admin/masters/{master_type}/{record_id}", response_model=ApiResponse[dict])
async def delete_master_record(
    master_type: MasterType,
    record_id: UUID,
    user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await MasterService.delete_record(db, master_type, record_id)
    await commit_or_raise(db)
    return ApiResponse(data={"message": "Record deleted successfully"})
