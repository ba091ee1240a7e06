"""
Asset schemas.

This module defines Pydantic models for asset catalogue validation
and serialization.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crestcat.models.asset import AssetType


class PricePoint(BaseModel):
    timestamp: datetime
    price: Decimal


class AssetBase(BaseModel):
    """Base schema for asset data."""

    name: str = Field(..., min_length=1, max_length=255)
    symbol: str = Field(..., min_length=1, max_length=32)
    type: AssetType
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    benefits: List[str] = Field(default_factory=list)


class AssetCreate(AssetBase):
    """Schema for creating a new asset."""

    current_price: Decimal = Field(..., gt=0)
    min_investment: Optional[Decimal] = Field(None, ge=0)

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Symbol cannot be blank")
        return v.strip().upper()


class AssetUpdate(BaseModel):
    """Schema for updating an asset. A new price triggers reconciliation."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[AssetType] = None
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)
    benefits: Optional[List[str]] = None
    min_investment: Optional[Decimal] = Field(None, ge=0)
    current_price: Optional[Decimal] = Field(None, gt=0)


class AssetPriceUpdate(BaseModel):
    price: Decimal = Field(..., gt=0)


class AssetResponse(AssetBase):
    """Schema for asset response."""

    id: UUID
    current_price: Decimal
    min_investment: Decimal
    price_history: List[PricePoint] = Field(default_factory=list)
    benefits: Optional[List[str]] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("price_history", mode="before")
    @classmethod
    def default_history(cls, v):
        return v or []


class AssetSummary(BaseModel):
    id: UUID
    name: str
    symbol: str
    type: AssetType
    current_price: Decimal

    model_config = ConfigDict(from_attributes=True)
