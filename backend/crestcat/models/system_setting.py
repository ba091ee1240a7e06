"""
System setting model.

Admin-maintained configuration stored as one JSON value per key, such as
the deposit methods offered to investors.
"""

from sqlalchemy import Column, String, Text

from crestcat.db.base import Base
from crestcat.models.types import JSONB

DEPOSIT_METHODS_KEY = "deposit_methods"


class SystemSetting(Base):
    """Model for admin-editable platform settings."""

    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSONB, nullable=True)
    description = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SystemSetting(key={self.key})>"
