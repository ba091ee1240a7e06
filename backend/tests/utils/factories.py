"""
Model factories for tests.

Each helper commits, so rows are visible to every session of the test
database.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.models.asset import Asset, AssetType
from crestcat.models.investment import Investment, InvestmentStatus
from crestcat.models.system_setting import DEPOSIT_METHODS_KEY, SystemSetting
from crestcat.models.user import User, UserRole
from crestcat.services.valuation import quantity, to_money, to_price, valuate


async def create_user(
    db: AsyncSession,
    *,
    email: Optional[str] = None,
    full_name: str = "Test User",
    role: UserRole = UserRole.USER,
    balance: Decimal = Decimal("0.00")
) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email or f"user-{uuid.uuid4().hex[:8]}@crestcat.com",
        full_name=full_name,
        role=role.value,
        balance=to_money(balance),
    )
    db.add(user)
    await db.commit()
    return user


async def create_asset(
    db: AsyncSession,
    *,
    name: str = "Gold",
    symbol: Optional[str] = None,
    price: Decimal = Decimal("100.00"),
    min_investment: Decimal = Decimal("10.00"),
    asset_type: AssetType = AssetType.GOLD,
    is_active: bool = True
) -> Asset:
    asset = Asset(
        id=uuid.uuid4(),
        name=name,
        symbol=symbol or f"X{uuid.uuid4().hex[:5].upper()}",
        type=asset_type.value,
        current_price=to_price(price),
        min_investment=to_money(min_investment),
        price_history=[],
        is_active=is_active,
    )
    db.add(asset)
    await db.commit()
    return asset


async def create_investment(
    db: AsyncSession,
    *,
    user: User,
    asset: Asset,
    amount: Decimal,
    purchase_price: Optional[Decimal] = None,
    status: InvestmentStatus = InvestmentStatus.ACTIVE
) -> Investment:
    """Insert an investment directly in ``status``, valued at the asset's current price."""
    price = to_price(purchase_price if purchase_price is not None else asset.current_price)
    amount = to_money(amount)
    units = quantity(amount, price)
    valuation = valuate(units, amount, asset.current_price)
    investment = Investment(
        id=uuid.uuid4(),
        user_id=user.id,
        asset=asset,
        amount=amount,
        quantity=units,
        purchase_price=price,
        current_value=valuation.current_value,
        profit_loss=valuation.profit_loss,
        status=status.value,
    )
    db.add(investment)
    await db.commit()
    return investment


async def reload_user(db: AsyncSession, user_id) -> User:
    return await db.get(User, user_id, populate_existing=True)


async def set_deposit_methods(db: AsyncSession, *methods: dict) -> SystemSetting:
    """Store ``methods`` as the deposit methods catalogue."""
    setting = SystemSetting(key=DEPOSIT_METHODS_KEY, value=list(methods))
    db.add(setting)
    await db.commit()
    return setting


BANK_TRANSFER = {
    "id": "bank-transfer",
    "name": "Bank transfer",
    "is_active": True,
    "account_details": {"bank": "Crest Bank", "account_number": "0012345678"},
}
