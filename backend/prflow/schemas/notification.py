"""PRFlow — Notification schemas."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    purchase_request_id: UUID | None
    title: str
    message: str
    type: str
    is_read: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True
