"""
Notification models.

In-app notifications for users and for the admin inbox. A NULL ``user_id``
addresses the admin inbox.
"""

import uuid
from datetime import datetime
from enum import Enum as PythonEnum

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, String, Text

from crestcat.db.base import Base
from crestcat.models.types import GUID, JSONB


class NotificationCategory(str, PythonEnum):
    """Enum for notification categories."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    INVESTMENT = "INVESTMENT"
    SYSTEM = "SYSTEM"


class Notification(Base):
    """Model for in-app notifications."""

    __tablename__ = "notifications"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    category = Column(
        Enum(*[c.value for c in NotificationCategory], native_enum=False, name="notification_category"),
        nullable=False,
        default=NotificationCategory.SYSTEM.value
    )
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    meta_info = Column("metadata", JSONB, nullable=True)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
    )

    @property
    def is_admin_notification(self) -> bool:
        return self.user_id is None

    def mark_read(self, when: datetime) -> None:
        self.is_read = True
        self.read_at = when

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, title={self.title})>"
