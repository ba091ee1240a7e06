"""
Investment model.

One user's stake in one asset, bought at one price. The explicit ``status``
column is the single source of truth for the lifecycle; ``is_active`` and
``closure_requested`` are derived from it.
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
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship

from crestcat.db.base import Base
from crestcat.models.types import GUID


class InvestmentStatus(str, PythonEnum):
    """Investment lifecycle state."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CLOSURE_REQUESTED = "CLOSURE_REQUESTED"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"


# States whose value is marked to market and which block asset removal
LIVE_STATUSES = (InvestmentStatus.ACTIVE.value, InvestmentStatus.CLOSURE_REQUESTED.value)


class Investment(Base):
    """
    User investment in an asset.

    Attributes:
        id (UUID): Primary key
        user_id (UUID): Owner, immutable
        asset_id (UUID): Asset, immutable
        amount (Decimal): Cash committed, immutable
        quantity (Decimal): amount / purchase_price, immutable
        purchase_price (Decimal): Asset price at creation, immutable
        current_value (Decimal): quantity * live price
        profit_loss (Decimal): current_value - amount
        status (InvestmentStatus): Lifecycle state
        receipt_id (str): Deposit receipt reference
    """

    __tablename__ = "investments"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)

    user_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    asset_id = Column(GUID(), ForeignKey("assets.id"), nullable=False)

    # Valuation
    amount = Column(Numeric(precision=18, scale=2), nullable=False)
    quantity = Column(Numeric(precision=28, scale=10), nullable=False)
    purchase_price = Column(Numeric(precision=28, scale=10), nullable=False)
    current_value = Column(Numeric(precision=18, scale=2), nullable=False)
    profit_loss = Column(Numeric(precision=18, scale=2), nullable=False, default=0)

    # Deposit evidence
    deposit_method = Column(String(100), nullable=True)
    deposit_proof = Column(Text, nullable=True)
    receipt_id = Column(String(40), nullable=True, unique=True)

    status = Column(
        Enum(*[s.value for s in InvestmentStatus], native_enum=False, name="investment_status"),
        default=InvestmentStatus.PENDING.value,
        nullable=False
    )

    # Review
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(GUID(), nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejected_by = Column(GUID(), nullable=True)
    review_notes = Column(Text, nullable=True)

    # Closure
    closure_requested_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    closure_approved_by = Column(GUID(), nullable=True)
    closure_rejected_at = Column(DateTime, nullable=True)
    closure_notes = Column(Text, nullable=True)

    user = relationship("User", back_populates="investments", lazy="raise")
    asset = relationship("Asset", back_populates="investments", lazy="joined", innerjoin=True)

    __table_args__ = (
        Index("ix_investments_user_status", "user_id", "status"),
        Index("ix_investments_asset_status", "asset_id", "status"),
        CheckConstraint("amount > 0", name="investment_amount_positive"),
        CheckConstraint("quantity > 0", name="investment_quantity_positive"),
    )

    @hybrid_property
    def is_active(self) -> bool:
        return self.status in LIVE_STATUSES

    @is_active.expression
    def is_active(cls):
        return cls.status.in_(LIVE_STATUSES)

    @hybrid_property
    def closure_requested(self) -> bool:
        return self.status == InvestmentStatus.CLOSURE_REQUESTED.value

    @closure_requested.expression
    def closure_requested(cls):
        return cls.status == InvestmentStatus.CLOSURE_REQUESTED.value

    def __repr__(self) -> str:
        return (
            f"<Investment(id={self.id}, "
            f"user_id={self.user_id}, "
            f"amount={self.amount}, "
            f"quantity={self.quantity}, "
            f"status={self.status})>"
        )
