"""
Investment schemas.

This module defines Pydantic models for investment-related data validation
and serialization.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from crestcat.models.investment import InvestmentStatus
from crestcat.schemas.asset import AssetSummary
from crestcat.services.valuation import profit_loss_percent


class InvestmentCreate(BaseModel):
    """Schema for submitting a deposit into an asset."""

    asset_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    deposit_method: Optional[str] = Field(None, max_length=100)
    deposit_proof: Optional[str] = None


class InvestmentReview(BaseModel):
    """Admin approval or rejection of a pending deposit."""

    notes: Optional[str] = Field(None, max_length=2000)


class ClosureDecision(BaseModel):
    """Admin decision on a closure request."""

    notes: Optional[str] = Field(None, max_length=2000)


class ClosureRejection(BaseModel):
    reason: str = Field(..., max_length=2000)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str) -> str:
        return v.strip()


class InvestmentCorrection(BaseModel):
    """Admin correction of deposit evidence on a pending investment."""

    deposit_method: Optional[str] = Field(None, max_length=100)
    deposit_proof: Optional[str] = None
    review_notes: Optional[str] = Field(None, max_length=2000)


class InvestmentResponse(BaseModel):
    """Schema for investment response."""

    id: UUID
    user_id: UUID
    asset_id: UUID
    asset: Optional[AssetSummary] = None
    amount: Decimal
    quantity: Decimal
    purchase_price: Decimal
    current_value: Decimal
    profit_loss: Decimal
    status: InvestmentStatus
    is_active: bool
    closure_requested: bool
    deposit_method: Optional[str] = None
    receipt_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    closure_requested_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    closure_rejected_at: Optional[datetime] = None
    closure_notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @computed_field  # type: ignore[misc]
    @property
    def profit_loss_percent(self) -> Decimal:
        return profit_loss_percent(self.profit_loss, self.amount)
