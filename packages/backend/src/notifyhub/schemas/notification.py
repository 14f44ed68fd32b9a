"""Pydantic schemas for the notification read path."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


# ─── Notifications ───────────────────────────────────────

class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: str
    title: str
    message: str
    data: dict[str, Any]
    read: bool
    created_at: datetime


class UnreadCount(BaseModel):
    count: int


class ReadAllResult(BaseModel):
    message: str = "All notifications marked as read"
    updated_count: int

