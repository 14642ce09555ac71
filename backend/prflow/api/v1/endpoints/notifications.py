"""PRFlow — Notification endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.api.deps import get_db, require_auth
from prflow.core.identity import CurrentUser
from prflow.db.session import commit_or_raise
from prflow.schemas.common import ApiResponse
from prflow.schemas.notification import NotificationResponse
from prflow.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[NotificationResponse]])
async def list_notifications(
    unread_only: bool = Query(False),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Current user's notifications, newest first."""
    notifications = await NotificationService.list_for_user(db, user.id, unread_only=unread_only)
    return ApiResponse(data=[NotificationResponse.model_validate(n) for n in notifications])


@router.get("/unread-count", response_model=ApiResponse[dict])
async def unread_count(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.unread_count(db, user.id)
    return ApiResponse(data={"unread": count})


@router.put("/read-all", response_model=ApiResponse[dict])
async def mark_all_read(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    updated = await NotificationService.mark_all_read(db, user)
    await commit_or_raise(db)
    return ApiResponse(data={"updated": updated})


@router.put("/{notification_id}/read", response_model=ApiResponse[NotificationResponse])
async def mark_read(
    notification_id: UUID,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.mark_read(db, user, notification_id)
    await commit_or_raise(db)
    return ApiResponse(data=NotificationResponse.model_validate(notification))
