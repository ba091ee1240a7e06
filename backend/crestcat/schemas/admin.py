"""
Admin schemas.

Balance adjustments, reconciliation reports and dashboard aggregates.
"""

from decimal import Decimal
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class BalanceAdjustment(BaseModel):
    """Manual override of a user's balance."""

    operation: Literal["set", "increase", "decrease"]
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    note: Optional[str] = Field(None, max_length=500)


class BalanceAdjustmentResult(BaseModel):
    user_id: UUID
    operation: str
    previous_balance: Decimal
    new_balance: Decimal
    transaction_id: UUID


class InvestmentRevaluation(BaseModel):
    investment_id: UUID
    user_id: UUID
    old_value: Decimal
    new_value: Decimal
    old_profit_loss: Decimal
    new_profit_loss: Decimal
    delta: Decimal


class ReconciliationReport(BaseModel):
    """Outcome of one price reconciliation pass."""

    asset_id: UUID
    old_price: Decimal
    new_price: Decimal
    investments_updated: int = 0
    total_delta: Decimal = Decimal("0.00")
    revaluations: List[InvestmentRevaluation] = Field(default_factory=list)


class AssetAllocation(BaseModel):
    asset_id: UUID
    asset_name: str
    asset_symbol: str
    total_invested: Decimal


class PlatformStats(BaseModel):
    total_users: int
    total_investments: int
    investments_by_status: Dict[str, int]
    pending_withdrawals: int
    pending_deposits: int
    total_transaction_volume: Decimal
    asset_distribution: List[AssetAllocation]


class BadgeCounts(BaseModel):
    new_users: int
    pending_investments: int
    pending_withdrawals: int
