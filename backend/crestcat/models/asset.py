"""
Asset model.

A curated instrument users can invest in. Prices are set by an admin and
every change is appended to a bounded price history.
"""

import uuid
from decimal import Decimal
from enum import Enum as PythonEnum

from sqlalchemy import Boolean, CheckConstraint, Column, Enum, Numeric, String, Text
from sqlalchemy.orm import relationship, validates

from crestcat.db.base import Base
from crestcat.models.types import GUID, JSONB


class AssetType(str, PythonEnum):
    """Asset class."""
    GOLD = "GOLD"
    SILVER = "SILVER"
    CRYPTO = "CRYPTO"
    STOCKS = "STOCKS"
    REAL_ESTATE = "REAL_ESTATE"
    BONDS = "BONDS"


class Asset(Base):
    """
    Tradeable asset.

    Attributes:
        id (UUID): Primary key
        name (str): Display name
        symbol (str): Unique ticker, e.g. XAU
        type (AssetType): Asset class
        current_price (Decimal): Live price, always positive
        min_investment (Decimal): Smallest accepted deposit
        price_history (list): ``{"timestamp", "price"}`` points, oldest first
        benefits (list): Marketing bullet points
        is_active (bool): Soft-delete flag
    """

    __tablename__ = "assets"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)

    name = Column(String(255), nullable=False)
    symbol = Column(String(32), unique=True, nullable=False, index=True)
    type = Column(
        Enum(*[t.value for t in AssetType], native_enum=False, name="asset_type"),
        nullable=False
    )
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    benefits = Column(JSONB, nullable=True)

    current_price = Column(Numeric(precision=28, scale=10), nullable=False)
    min_investment = Column(Numeric(precision=18, scale=2), default=Decimal("10"), nullable=False)
    price_history = Column(JSONB, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    investments = relationship("Investment", back_populates="asset", lazy="raise")

    __table_args__ = (
        CheckConstraint("current_price > 0", name="asset_price_positive"),
        CheckConstraint("min_investment >= 0", name="asset_min_investment_non_negative"),
    )

    @validates("symbol")
    def validate_symbol(self, key: str, symbol: str) -> str:
        return symbol.strip().upper()

    def __repr__(self) -> str:
        return (
            f"<Asset(id={self.id}, "
            f"symbol={self.symbol}, "
            f"price={self.current_price}, "
            f"active={self.is_active})>"
        )
