"""
Withdrawal model.

A cash-out request against the user's withdrawable balance. Funds leave the
balance only when an admin approves the request.
"""

import uuid
from enum import Enum as PythonEnum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from crestcat.db.base import Base
from crestcat.models.types import GUID, JSONB


class WithdrawalStatus(str, PythonEnum):
    """Withdrawal lifecycle state."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class Withdrawal(Base):
    """Cash-out request."""

    __tablename__ = "withdrawals"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    amount = Column(Numeric(precision=18, scale=2), nullable=False)
    bank_account_number = Column(String(64), nullable=False)
    bank_account_name = Column(String(255), nullable=False)
    additional_details = Column(JSONB, nullable=True)

    status = Column(
        Enum(*[s.value for s in WithdrawalStatus], native_enum=False, name="withdrawal_status"),
        default=WithdrawalStatus.PENDING.value,
        nullable=False
    )
    processed_by = Column(GUID(), nullable=True)
    processed_at = Column(DateTime, nullable=True)
    admin_notes = Column(Text, nullable=True)
    receipt_id = Column(String(40), nullable=True, unique=True)

    user = relationship("User", back_populates="withdrawals", lazy="raise")

    __table_args__ = (
        Index("ix_withdrawals_user_status", "user_id", "status"),
        CheckConstraint("amount > 0", name="withdrawal_amount_positive"),
    )

    @property
    def masked_account_number(self) -> str:
        number = self.bank_account_number or ""
        return f"****{number[-4:]}" if len(number) > 4 else number

    def __repr__(self) -> str:
        return (
            f"<Withdrawal(id={self.id}, "
            f"user_id={self.user_id}, "
            f"amount={self.amount}, "
            f"status={self.status})>"
        )
