"""PRFlow — MasterService: admin CRUD over master data.

Each master type maps to a handler describing its model and schemas, so the
endpoint never branches on the type string. Approval-matrix edits also move
waiting requests to the approver now configured for their level.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable
from uuid import UUID

import pydantic
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.core.exceptions import NotFoundError, ValidationError
from prflow.core.identity import APPROVER_ROLES
from prflow.db.base import Base
from prflow.models.approval import ApprovalWorkflow
from prflow.models.master import Department, InventoryItem, Location
from prflow.models.user import User
from prflow.schemas.master import (
    ApprovalWorkflowCreate,
    ApprovalWorkflowResponse,
    ApprovalWorkflowUpdate,
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    LocationCreate,
    LocationResponse,
    LocationUpdate,
)
from prflow.services.purchase_request_service import PurchaseRequestService

logger = logging.getLogger(__name__)


class MasterType(str, Enum):
    DEPARTMENTS = "departments"
    LOCATIONS = "locations"
    INVENTORY = "inventory"
    APPROVAL_WORKFLOWS = "approval-workflows"


async def _check_approver(db: AsyncSession, values: dict[str, Any]) -> None:
    approver_id = values.get("approver_id")
    if approver_id is None:
        return
    user = await db.get(User, approver_id)
    if not user or not user.is_active:
        raise ValidationError("Approver not found", [{"field": "approver_id", "message": "Unknown user"}])
    if user.role not in APPROVER_ROLES:
        raise ValidationError(
            "Approver must have the approver or admin role",
            [{"field": "approver_id", "message": f"User role is {user.role}"}],
        )


async def _sync_pending_requests(db: AsyncSession, entry: ApprovalWorkflow) -> None:
    await PurchaseRequestService.sync_pending_approvers(db, entry.department, entry.location)


@dataclass(frozen=True)
class MasterHandler:
    model: type[Base]
    create_schema: type[pydantic.BaseModel]
    update_schema: type[pydantic.BaseModel]
    response_schema: type[pydantic.BaseModel]
    order_by: tuple = ()
    check: Callable[[AsyncSession, dict[str, Any]], Awaitable[None]] | None = field(default=None)
    after_change: Callable[[AsyncSession, Any], Awaitable[None]] | None = field(default=None)


MASTER_HANDLERS: dict[MasterType, MasterHandler] = {
    MasterType.DEPARTMENTS: MasterHandler(
        Department, DepartmentCreate, DepartmentUpdate, DepartmentResponse,
        order_by=(Department.name,),
    ),
    MasterType.LOCATIONS: MasterHandler(
        Location, LocationCreate, LocationUpdate, LocationResponse,
        order_by=(Location.name,),
    ),
    MasterType.INVENTORY: MasterHandler(
        InventoryItem, InventoryItemCreate, InventoryItemUpdate, InventoryItemResponse,
        order_by=(InventoryItem.name,),
    ),
    MasterType.APPROVAL_WORKFLOWS: MasterHandler(
        ApprovalWorkflow, ApprovalWorkflowCreate, ApprovalWorkflowUpdate, ApprovalWorkflowResponse,
        order_by=(ApprovalWorkflow.department, ApprovalWorkflow.location, ApprovalWorkflow.approval_level),
        check=_check_approver,
        after_change=_sync_pending_requests,
    ),
}


def _parse(schema: type[pydantic.BaseModel], payload: dict[str, Any]) -> pydantic.BaseModel:
    try:
        return schema.model_validate(payload)
    except pydantic.ValidationError as exc:
        field_errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError("Invalid master record", field_errors) from exc


class MasterService:
    """Generic CRUD driven by MASTER_HANDLERS."""

    @staticmethod
    async def list_records(db: AsyncSession, master_type: MasterType) -> list[Any]:
        handler = MASTER_HANDLERS[master_type]
        result = await db.execute(select(handler.model).order_by(*handler.order_by))
        return list(result.scalars().all())

    @staticmethod
    async def get_record(db: AsyncSession, master_type: MasterType, record_id: UUID) -> Any:
        handler = MASTER_HANDLERS[master_type]
        record = await db.get(handler.model, record_id)
        if record is None:
            raise NotFoundError(f"{master_type.value} record not found")
        return record

    @staticmethod
    async def _flush(db: AsyncSession, master_type: MasterType) -> None:
        try:
            await db.flush()
        except IntegrityError as exc:
            logger.info("Duplicate %s record rejected: %s", master_type.value, exc.orig)
            raise ValidationError(f"A matching {master_type.value} record already exists") from exc

    @staticmethod
    async def create_record(db: AsyncSession, master_type: MasterType, payload: dict[str, Any]) -> Any:
        handler = MASTER_HANDLERS[master_type]
        values = _parse(handler.create_schema, payload).model_dump()
        if handler.check:
            await handler.check(db, values)
        record = handler.model(**values)
        db.add(record)
        await MasterService._flush(db, master_type)
        if handler.after_change:
            await handler.after_change(db, record)
        return record

    @staticmethod
    async def update_record(
        db: AsyncSession,
        master_type: MasterType,
        record_id: UUID,
        payload: dict[str, Any],
    ) -> Any:
        handler = MASTER_HANDLERS[master_type]
        record = await MasterService.get_record(db, master_type, record_id)
        values = {
            k: v for k, v in _parse(handler.update_schema, payload).model_dump(exclude_unset=True).items()
            if v is not None
        }
        if handler.check:
            await handler.check(db, values)
        for key, value in values.items():
            setattr(record, key, value)
        await MasterService._flush(db, master_type)
        if handler.after_change:
            await handler.after_change(db, record)
        return record

    @staticmethod
    async def delete_record(db: AsyncSession, master_type: MasterType, record_id: UUID) -> None:
        handler = MASTER_HANDLERS[master_type]
        record = await MasterService.get_record(db, master_type, record_id)
        await db.delete(record)
        await MasterService._flush(db, master_type)
        if handler.after_change:
            await handler.after_change(db, record)

    @staticmethod
    def serialize(master_type: MasterType, record: Any) -> dict[str, Any]:
        schema = MASTER_HANDLERS[master_type].response_schema
        return schema.model_validate(record).model_dump(mode="json")
