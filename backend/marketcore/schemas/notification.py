"""Notification Schemas — inbox listing output."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from marketcore.schemas.common import UtcDatetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    title: str
    message: str
    reference_id: UUID
    reference_type: str
    is_read: bool
    created_at: UtcDatetime


class InboxResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int
