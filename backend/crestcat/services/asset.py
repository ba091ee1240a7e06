"""
Asset Service

Admin-curated asset catalogue. Price changes always go through the
reconciler so that live investments and balances follow the new price.
"""

import uuid
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crestcat.auth.principal import Principal
from crestcat.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from crestcat.core.logging import get_logger
from crestcat.core.settings import settings
from crestcat.models.asset import Asset
from crestcat.models.investment import LIVE_STATUSES, Investment
from crestcat.schemas.admin import ReconciliationReport
from crestcat.schemas.asset import AssetCreate, AssetUpdate
from crestcat.services.reconciliation import PriceReconciler, append_price_point
from crestcat.services.valuation import ZERO, to_money, to_price

# Initialize logger
logger = get_logger(__name__)


class AssetService:
    """Service for the asset catalogue."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.reconciler = PriceReconciler(db)

    async def create(self, principal: Principal, data: AssetCreate) -> Asset:
        """
        Add an asset to the catalogue.

        Raises:
            UnauthorizedError: Caller is not an admin
            ValidationError: Symbol already taken, or a price that rounds to zero
        """
        principal.require_admin()
        existing = await self.db.scalar(select(Asset.id).where(Asset.symbol == data.symbol))
        if existing is not None:
            raise ValidationError(f"Asset symbol {data.symbol} already exists", details={"symbol": data.symbol})

        price = to_price(data.current_price)
        if price <= ZERO:
            raise ValidationError("Price must be greater than zero", details={"price": str(data.current_price)})
        min_investment = data.min_investment
        if min_investment is None:
            min_investment = settings.ledger.DEFAULT_MIN_INVESTMENT

        asset = Asset(
            id=uuid.uuid4(),
            name=data.name,
            symbol=data.symbol,
            type=data.type.value,
            description=data.description,
            image_url=data.image_url,
            benefits=data.benefits,
            current_price=price,
            min_investment=to_money(min_investment),
            price_history=append_price_point([], price, datetime.utcnow(), settings.ledger.PRICE_HISTORY_LIMIT),
            is_active=True,
        )
        self.db.add(asset)
        await self.db.commit()

        logger.info("Asset created", extra={"asset_id": str(asset.id), "symbol": asset.symbol})
        return asset

    async def update(
        self,
        principal: Principal,
        asset_id: UUID,
        data: AssetUpdate
    ) -> Tuple[Asset, Optional[ReconciliationReport]]:
        """
        Edit catalogue fields; a new price runs a reconciliation pass.

        Returns:
            The asset and the reconciliation report, if the price changed

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown asset
        """
        principal.require_admin()
        asset = await self._get(asset_id)

        changes = data.model_dump(exclude_unset=True)
        new_price = changes.pop("current_price", None)
        for field, value in changes.items():
            if field == "type" and value is not None:
                value = value.value
            if field == "min_investment" and value is not None:
                value = to_money(value)
            setattr(asset, field, value)

        report = None
        if new_price is not None and to_price(new_price) != to_price(asset.current_price):
            report = await self.reconciler.apply_price(asset.id, new_price, principal.user_id)
        await self.db.commit()

        logger.info(
            "Asset updated",
            extra={"asset_id": str(asset.id), "fields": sorted(changes), "repriced": report is not None}
        )
        return asset, report

    async def update_price(
        self,
        principal: Principal,
        asset_id: UUID,
        price
    ) -> ReconciliationReport:
        """
        Set a new price and reconcile every live investment on the asset.

        Raises:
            UnauthorizedError: Caller is not an admin
            ValidationError: Non-positive price
            NotFoundError: Unknown asset
        """
        principal.require_admin()
        report = await self.reconciler.apply_price(asset_id, price, principal.user_id)
        await self.db.commit()
        return report

    async def deactivate(self, principal: Principal, asset_id: UUID) -> Asset:
        """
        Remove an asset from the catalogue (soft delete).

        Raises:
            UnauthorizedError: Caller is not an admin
            NotFoundError: Unknown asset
            InvalidStateError: The asset still has live investments
        """
        principal.require_admin()
        asset = await self._get(asset_id)

        live = await self.db.scalar(
            select(func.count(Investment.id)).where(
                Investment.asset_id == asset.id,
                Investment.status.in_(LIVE_STATUSES)
            )
        )
        if live:
            raise InvalidStateError(
                "Cannot delete asset with active investments",
                details={"asset_id": str(asset.id), "live_investments": live}
            )

        asset.is_active = False
        await self.db.commit()
        logger.info("Asset deactivated", extra={"asset_id": str(asset.id)})
        return asset

    async def list_active(self) -> List[Asset]:
        result = await self.db.execute(
            select(Asset).where(Asset.is_active.is_(True)).order_by(Asset.name)
        )
        return list(result.scalars().all())

    async def get(self, asset_id: UUID, include_inactive: bool = False) -> Asset:
        asset = await self._get(asset_id)
        if not asset.is_active and not include_inactive:
            raise NotFoundError("Asset not found")
        return asset

    async def _get(self, asset_id: UUID) -> Asset:
        asset = await self.db.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError("Asset not found", details={"asset_id": str(asset_id)})
        return asset
