"""
Transaction model for cash movements.

A Transaction is an audit record, not the source of truth: its status
mirrors the linked Investment or Withdrawal. It includes:
- UUID-based identification
- Type and status tracking
- Explicit links to the investment or withdrawal it records
- Typed metadata (validated by ``crestcat.schemas.transaction``)
"""

import uuid
from decimal import Decimal
from enum import Enum as PythonEnum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship, validates

from crestcat.db.base import Base
from crestcat.models.types import GUID, JSONB


class TransactionType(str, PythonEnum):
    """Transaction type enum."""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    INVESTMENT = "INVESTMENT"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class TransactionStatus(str, PythonEnum):
    """Transaction status enum."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class Transaction(Base):
    """
    Audit record of a cash movement.

    Attributes:
        id (UUID): Primary key
        user_id (UUID): Account the movement belongs to
        type (TransactionType): Kind of movement
        status (TransactionStatus): Mirrors the linked entity
        amount (Decimal): Movement amount, never negative
        description (str): Human readable summary
        processed_by (UUID): Admin who decided the linked entity
        investment_id (UUID): Linked investment (deposit, closure)
        withdrawal_id (UUID): Linked withdrawal
        meta_data (dict): Kind-specific payload, stored in column ``metadata``
    """

    __tablename__ = "transactions"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)

    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(
        Enum(*[tt.value for tt in TransactionType], native_enum=False, name="transaction_type"),
        nullable=False
    )
    status = Column(
        Enum(*[ts.value for ts in TransactionStatus], native_enum=False, name="transaction_status"),
        default=TransactionStatus.PENDING.value,
        nullable=False
    )
    amount = Column(Numeric(precision=18, scale=2), nullable=False)
    description = Column(String(500), nullable=True)
    processed_by = Column(GUID(), nullable=True)

    investment_id = Column(GUID(), ForeignKey("investments.id"), nullable=True)
    withdrawal_id = Column(GUID(), ForeignKey("withdrawals.id"), nullable=True)

    # 'metadata' is reserved on declarative classes
    meta_data = Column("metadata", JSONB, nullable=True)

    user = relationship("User", lazy="raise")

    __table_args__ = (
        Index("ix_transactions_user_id", "user_id"),
        Index("ix_transactions_investment_id", "investment_id"),
        Index("ix_transactions_withdrawal_id", "withdrawal_id"),
        Index("ix_transactions_status", "status"),
        CheckConstraint("amount >= 0", name="transaction_amount_non_negative"),
    )

    @validates("amount")
    def validate_amount(self, key: str, amount: Decimal) -> Decimal:
        """Validate transaction amount."""
        if amount is None or Decimal(amount) < 0:
            raise ValueError("Transaction amount must not be negative")
        return amount

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, "
            f"user_id={self.user_id}, "
            f"amount={self.amount}, "
            f"type={self.type}, "
            f"status={self.status})>"
        )
