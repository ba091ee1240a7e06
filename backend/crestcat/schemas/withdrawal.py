"""Withdrawal schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crestcat.models.withdrawal import WithdrawalStatus


class WithdrawalCreate(BaseModel):
    """Schema for a cash-out request."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    bank_account_number: str = Field(..., max_length=64)
    bank_account_name: str = Field(..., max_length=255)
    additional_details: Optional[Dict[str, Any]] = None

    @field_validator("bank_account_number", "bank_account_name")
    @classmethod
    def strip_bank_fields(cls, v: str) -> str:
        return v.strip()


class WithdrawalProcess(BaseModel):
    """Admin decision on a pending withdrawal."""

    action: Literal["approve", "reject"]
    admin_notes: Optional[str] = Field(None, max_length=2000)


class WithdrawalResponse(BaseModel):
    """Schema for withdrawal response."""

    id: UUID
    user_id: UUID
    amount: Decimal
    bank_account_name: str
    masked_account_number: str
    status: WithdrawalStatus
    processed_by: Optional[UUID] = None
    processed_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    receipt_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
