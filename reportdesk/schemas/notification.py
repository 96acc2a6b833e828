"""
Notification schemas
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, field_serializer, ConfigDict
from reportdesk.models.notification import NotificationType


class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    report_id: Optional[int] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        from reportdesk.utils.datetime_utils import iso_8601_utc
        return iso_8601_utc(dt)


class NotificationListResponse(BaseModel):
    items: List[NotificationOut]
    total: int
    unread_count: int
    page: int
    limit: int
    pages: int


class UnreadCountOut(BaseModel):
    unread_count: int


class MarkAllReadOut(BaseModel):
    updated: int
