"""
User model.

Only the attributes the platform core needs: identity, role and the
withdrawable balance. Registration and credentials live with the external
auth provider.
"""

import uuid
from decimal import Decimal
from enum import Enum as PythonEnum

from sqlalchemy import Boolean, Column, Enum, Numeric, String
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship, validates

from crestcat.db.base import Base
from crestcat.models.types import GUID


class UserRole(str, PythonEnum):
    """Principal role."""
    USER = "USER"
    ADMIN = "ADMIN"


class User(Base):
    """
    Platform user.

    Attributes:
        id (UUID): Primary key
        email (str): Login email address
        full_name (str): Display name
        phone (str): Contact number used for WhatsApp receipts
        role (UserRole): USER or ADMIN
        balance (Decimal): Withdrawable cash; written only by BalanceLedger
        is_active (bool): Account status
    """

    __tablename__ = "users"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)

    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(
        Enum(*[r.value for r in UserRole], native_enum=False, name="user_role"),
        default=UserRole.USER.value,
        nullable=False
    )
    balance = Column(Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    investments = relationship("Investment", back_populates="user", lazy="raise")
    withdrawals = relationship("Withdrawal", back_populates="user", lazy="raise")

    @validates("email")
    def validate_email(self, key: str, email: str) -> str:
        return email.strip().lower()

    @hybrid_property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, "
            f"email={self.email}, "
            f"role={self.role}, "
            f"balance={self.balance})>"
        )
