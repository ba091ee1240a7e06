"""
Balance entry model.

Append-only journal of every change to ``User.balance``. For any user the
sum of entry amounts equals the balance.
"""

import uuid
from enum import Enum as PythonEnum

from sqlalchemy import Column, Enum, ForeignKey, Index, Numeric, String

from crestcat.db.base import Base
from crestcat.models.types import GUID


class BalanceReason(str, PythonEnum):
    """Why the balance moved."""
    CLOSURE_CREDIT = "CLOSURE_CREDIT"
    WITHDRAWAL_DEBIT = "WITHDRAWAL_DEBIT"
    MARK_TO_MARKET = "MARK_TO_MARKET"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class BalanceEntry(Base):
    """Signed balance movement with the resulting balance."""

    __tablename__ = "balance_entries"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    amount = Column(Numeric(precision=18, scale=2), nullable=False)
    balance_after = Column(Numeric(precision=18, scale=2), nullable=False)
    reason = Column(
        Enum(*[r.value for r in BalanceReason], native_enum=False, name="balance_reason"),
        nullable=False
    )

    investment_id = Column(GUID(), nullable=True)
    withdrawal_id = Column(GUID(), nullable=True)
    transaction_id = Column(GUID(), nullable=True)
    asset_id = Column(GUID(), nullable=True)
    actor_id = Column(GUID(), nullable=True)
    note = Column(String(500), nullable=True)

    __table_args__ = (
        Index("ix_balance_entries_user_id", "user_id"),
        Index("ix_balance_entries_investment_id", "investment_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<BalanceEntry(user_id={self.user_id}, "
            f"amount={self.amount}, "
            f"reason={self.reason}, "
            f"balance_after={self.balance_after})>"
        )
