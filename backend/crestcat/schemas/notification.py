"""
Notification schemas.

This module defines the notification intent handed to the notifier and the
in-app notification response models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from crestcat.models.notification import NotificationCategory


class EmailMessage(BaseModel):
    """
    Templated email to send alongside an in-app notification.

    ``to`` is the address as stored on the user; it is validated when the
    email is sent so that a bad address only fails the email channel.
    """

    to: str
    subject: str
    template_name: str
    template_data: Dict[str, Any] = Field(default_factory=dict)


class NotificationEvent(BaseModel):
    """
    Notification intent emitted after a state change commits.

    ``user_id`` addresses a user's inbox; ``admin=True`` addresses the admin
    inbox instead. ``email`` and ``whatsapp`` are optional extra channels.
    """

    kind: str
    title: str
    message: str
    category: NotificationCategory = NotificationCategory.SYSTEM
    user_id: Optional[UUID] = None
    admin: bool = False
    email: Optional[EmailMessage] = None
    whatsapp: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_recipient(self) -> "NotificationEvent":
        if self.user_id is None and not self.admin:
            raise ValueError("A notification needs a user_id or admin=True")
        return self


class NotificationResponse(BaseModel):
    id: UUID
    title: str
    message: str
    category: NotificationCategory
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationList(BaseModel):
    items: List[NotificationResponse]
    unread_count: int
